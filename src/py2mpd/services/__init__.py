"""Services built on top of the connection core."""

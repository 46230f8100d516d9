"""
Structured record models built from MPD data lines.

Listings such as "lsinfo" or "playlistinfo" answer with a flat stream of
"field: value" lines. A record starts with one of the record-start fields
(file, directory, playlist) and every following field belongs to it until
the next record-start field.
"""

from typing import Dict, Iterator, Optional, Tuple


class Item:
    """
    A record of fields received from the server.

    Field names are stored normalized (lower-case, "-" replaced by "_").
    Fields are reachable both as mapping keys and as attributes.

    Example:
        >>> song = Song("a.ogg")
        >>> song.set("time", "120")
        >>> song.file, song["time"], song.duration
        ('a.ogg', '120', 120)
    """

    kind: Optional[str] = None

    def __init__(self, **fields: Optional[str]):
        self._fields: Dict[str, Optional[str]] = dict(fields)

    def set(self, field: str, value: Optional[str]) -> None:
        self._fields[field] = value

    def get(self, field: str, default: Optional[str] = None) -> Optional[str]:
        return self._fields.get(field, default)

    @property
    def fields(self) -> Dict[str, Optional[str]]:
        """Copy of all fields of this record."""
        return dict(self._fields)

    @property
    def path(self) -> Optional[str]:
        """Value of the record-start field, None for untyped records."""
        if self.kind is None:
            return None
        return self._fields.get(self.kind)

    def __getitem__(self, field: str) -> Optional[str]:
        return self._fields[field]

    def __contains__(self, field: str) -> bool:
        return field in self._fields

    def __iter__(self) -> Iterator[Tuple[str, Optional[str]]]:
        return iter(self._fields.items())

    def __len__(self) -> int:
        return len(self._fields)

    def __getattr__(self, name: str) -> Optional[str]:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self._fields[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} has no field '{name}'") from None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return type(self) is type(other) and self._fields == other._fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._fields!r})"


class Song(Item):
    """A music file entry."""

    kind = 'file'

    def __init__(self, file: Optional[str] = None, **fields: Optional[str]):
        super().__init__(file=file, **fields)

    @property
    def duration(self) -> Optional[int]:
        """Length of the song in whole seconds, if the server reported it."""
        value = self._fields.get('time')
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class Directory(Item):
    """A directory entry of the music database."""

    kind = 'directory'

    def __init__(self, directory: Optional[str] = None, **fields: Optional[str]):
        super().__init__(directory=directory, **fields)


class Playlist(Item):
    """A stored playlist entry."""

    kind = 'playlist'

    def __init__(self, playlist: Optional[str] = None, **fields: Optional[str]):
        super().__init__(playlist=playlist, **fields)


ITEM_TYPES = {
    'file': Song,
    'directory': Directory,
    'playlist': Playlist,
}

RECORD_START_FIELDS = frozenset(ITEM_TYPES)


def create_item(field: str, value: Optional[str]) -> Item:
    """
    Create a new record seeded with its record-start field.

    Raises:
        KeyError: If field is not a record-start field
    """
    return ITEM_TYPES[field](value)

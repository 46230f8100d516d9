# Mock MPD server for testing
import socket
import threading
import time
import logging
from typing import Callable, Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Response = Union[Sequence[str], str, Callable[[str], Union[Sequence[str], str]]]

DEFAULT_GREETING = "OK MPD 0.23.5"


def unused_port() -> int:
    """Return a localhost port nothing is listening on."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(('127.0.0.1', 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


class MockMPDServer:
    """
    Mock MPD server for testing.

    Responses map a full command line, or just the command name, to either
    a list of data lines (answered with a trailing "OK"), an "ACK ..." string,
    or a callable receiving the command line and returning one of those.
    Unknown commands are answered with an ACK.

    Set greeting to None for a server that closes the connection without
    greeting. Clear release_greeting to hold the greeting back.
    """

    def __init__(self, host='127.0.0.1', port=0,
                 greeting: Optional[str] = DEFAULT_GREETING,
                 responses: Optional[Dict[str, Response]] = None):
        self.host = host
        self.port = port
        self.greeting = greeting
        self.responses: Dict[str, Response] = dict(responses or {})
        self.received: List[str] = []
        self.connections = 0
        self.release_greeting = threading.Event()
        self.release_greeting.set()
        self.running = False
        self._server: Optional[socket.socket] = None
        self._clients: List[socket.socket] = []
        self._lock = threading.Lock()

    def start(self):
        """Start the mock server."""
        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server.bind((self.host, self.port))
        self._server.listen(5)
        self.port = self._server.getsockname()[1]
        self.running = True

        thread = threading.Thread(target=self._accept_loop, daemon=True)
        thread.start()
        logger.info(f"Mock MPD server started on {self.host}:{self.port}")
        return self

    def stop(self):
        """Stop the mock server and drop every client."""
        self.running = False
        self.release_greeting.set()
        if self._server:
            self._server.close()
        self.drop_clients()
        logger.info("Mock server stopped")

    def drop_clients(self):
        """Close every open client connection."""
        with self._lock:
            clients, self._clients = self._clients, []
        for client in clients:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            client.close()

    def received_commands(self) -> List[str]:
        with self._lock:
            return list(self.received)

    def wait_for_connections(self, count: int, timeout: float = 5.0) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            with self._lock:
                if self.connections >= count:
                    return True
            time.sleep(0.01)
        return False

    def wait_for_received(self, count: int, timeout: float = 5.0) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            with self._lock:
                if len(self.received) >= count:
                    return True
            time.sleep(0.01)
        return False

    def _accept_loop(self):
        while self.running:
            try:
                client, addr = self._server.accept()
            except OSError:
                break
            logger.info(f"MPD connection from {addr}")
            with self._lock:
                self.connections += 1
                self._clients.append(client)
            thread = threading.Thread(target=self._handle_client, args=(client,), daemon=True)
            thread.start()

    def _handle_client(self, client: socket.socket):
        try:
            self.release_greeting.wait(5.0)
            if self.greeting is None or not self.running:
                client.shutdown(socket.SHUT_RDWR)
                return
            client.sendall((self.greeting + "\n").encode('utf-8'))

            in_list = False
            batch: List[str] = []
            for raw in client.makefile('r', encoding='utf-8', newline='\n'):
                line = raw.rstrip('\n')
                with self._lock:
                    self.received.append(line)

                if line == 'command_list_begin':
                    in_list, batch = True, []
                    continue
                if line == 'command_list_end':
                    in_list = False
                    reply = self._reply(batch)
                elif in_list:
                    batch.append(line)
                    continue
                else:
                    reply = self._reply([line])

                client.sendall(''.join(f"{l}\n" for l in reply).encode('utf-8'))
        except (OSError, ValueError) as e:
            if self.running:
                logger.debug(f"Client connection ended: {e}")
        finally:
            client.close()

    def _reply(self, commands: List[str]) -> List[str]:
        lines: List[str] = []
        for index, command in enumerate(commands):
            name = command.split(' ', 1)[0]
            response = self.responses.get(command, self.responses.get(name))
            if response is None:
                return lines + [f"ACK [5@{index}] {{{name}}} unknown command \"{name}\""]
            if callable(response):
                response = response(command)
            if isinstance(response, str):
                return lines + [response]
            lines.extend(response)
        return lines + ["OK"]

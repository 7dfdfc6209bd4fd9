"""TCP and Unix domain socket transports.

Both transports use one stream socket for reading and writing. Connect
failures surface as ``RiapConnectionError`` so the request engine retries
them; failures after the socket is up are protocol errors and are not.
"""

import logging
import socket

from .config import RiapConfig
from .exceptions import RiapConnectionError
from .target import TcpTarget, UnixTarget
from .transport import BufferedConnection

logger = logging.getLogger("riap-tools")


class SocketConnection(BufferedConnection):
    """A connected TCP or Unix stream socket.

    Usage:
        conn = connect_tcp(TcpTarget("localhost", 5678), config)
        conn.write(b"j{...}\\r\\n")
        line = conn.readline()
        conn.close()
    """

    def __init__(self, sock: socket.socket, peer: str, read_timeout: float | None = None):
        super().__init__(read_timeout)
        self.sock = sock
        self.peer = peer
        self.sock.settimeout(read_timeout)

    def describe(self) -> str:
        return self.peer

    def _recv(self, size: int) -> bytes:
        return self.sock.recv(size)

    def _send_all(self, data: bytes) -> None:
        self.sock.sendall(data)

    def is_alive(self) -> bool:
        """Peek at the socket without blocking.

        A connected, idle socket has nothing to read. End of stream means the
        peer hung up; unsolicited bytes mean the stream is out of step with
        the request/response cycle. Either way the socket is not reusable.
        """
        if self._closed or self._buffer or self.sock.fileno() == -1:
            return False
        try:
            self.sock.setblocking(False)
            self.sock.recv(1, socket.MSG_PEEK)
        except BlockingIOError:
            return True
        except OSError as e:
            logger.debug(f"Socket to {self.peer} failed liveness probe: {e}")
            return False
        finally:
            if self.sock.fileno() != -1:
                self.sock.settimeout(self.read_timeout)
        return False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.sock.close()
        except OSError as e:
            logger.debug(f"Error closing socket to {self.peer}: {e}")


def connect_tcp(target: TcpTarget, config: RiapConfig) -> SocketConnection:
    """Dial ``target.host:target.port``.

    Raises:
        RiapConnectionError: If the connection cannot be established
    """
    try:
        sock = socket.create_connection(
            (target.connect_host, target.port),
            timeout=config.connect_timeout,
        )
    except OSError as e:
        raise RiapConnectionError(
            f"Can't connect to TCP socket {target.address}: {e}"
        )
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    logger.debug(f"Connected to TCP socket {target.address}")
    return SocketConnection(sock, target.address, config.read_timeout)


def connect_unix(target: UnixTarget, config: RiapConfig) -> SocketConnection:
    """Connect a stream socket to ``target.socket_path``.

    Raises:
        RiapConnectionError: If the connection cannot be established
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(config.connect_timeout)
    try:
        sock.connect(target.socket_path)
    except OSError as e:
        sock.close()
        raise RiapConnectionError(
            f"Can't connect to Unix socket {target.socket_path}: {e}"
        )
    logger.debug(f"Connected to Unix socket {target.socket_path}")
    return SocketConnection(sock, target.socket_path, config.read_timeout)

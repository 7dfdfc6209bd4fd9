"""Connection interface shared by all Riap::Simple transports.

A connection is a live duplex byte stream to one server: a TCP or Unix
socket, or the stdin/stdout pair of a child process. The framing layer only
needs ``write``, ``readline`` and ``read_exact``; the cache additionally
needs ``is_alive`` and ``close``.
"""

import threading
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from .exceptions import RiapProtocolError

# Upper bound for a single response header line ("J<digits>\r\n").
MAX_LINE_LENGTH = 64 * 1024

_CHUNK_SIZE = 64 * 1024


@runtime_checkable
class RiapConnection(Protocol):
    """Protocol defining a live connection to a Riap::Simple server.

    Connections are responsible for:
    - Moving raw bytes to and from the server
    - Enforcing the read deadline
    - Reporting whether they are still usable
    - Releasing their OS resources on close
    """

    lock: threading.Lock
    closed: bool

    def write(self, data: bytes) -> None:
        """Send all of ``data``.

        Raises:
            RiapProtocolError: If the peer is gone or the write fails
        """
        ...

    def readline(self) -> bytes:
        """Read up to and including the next LF.

        Returns:
            The line, or ``b""`` if the peer closed before sending anything

        Raises:
            RiapProtocolError: On timeout, I/O failure or an overlong line
        """
        ...

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes.

        Raises:
            RiapProtocolError: On timeout, I/O failure or a short read
        """
        ...

    def is_alive(self) -> bool:
        """Check, without consuming data, whether the connection is usable."""
        ...

    def close(self) -> None:
        """Release the underlying resources. Safe to call multiple times."""
        ...


class BufferedConnection(ABC):
    """Base class for connections that read through a private buffer.

    Subclasses supply ``_recv`` (one blocking read honouring the read
    deadline) and ``_send_all``. Bytes left in the buffer after an exchange
    stay with the connection.
    """

    def __init__(self, read_timeout: float | None = None):
        self.read_timeout = read_timeout
        self.lock = threading.Lock()
        self._buffer = bytearray()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def _recv(self, size: int) -> bytes:
        """Read at most ``size`` bytes; ``b""`` means end of stream."""

    @abstractmethod
    def _send_all(self, data: bytes) -> None:
        """Write all of ``data``."""

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable name of the peer, for messages."""

    def write(self, data: bytes) -> None:
        if self._closed:
            raise RiapProtocolError(f"Connection to {self.describe()} is closed")
        try:
            self._send_all(data)
        except OSError as e:
            raise RiapProtocolError(f"Can't send request to {self.describe()}: {e}")

    def readline(self) -> bytes:
        while True:
            idx = self._buffer.find(b"\n")
            if idx >= 0:
                line = bytes(self._buffer[: idx + 1])
                del self._buffer[: idx + 1]
                return line
            if len(self._buffer) > MAX_LINE_LENGTH:
                raise RiapProtocolError(
                    f"Response line from {self.describe()} exceeds {MAX_LINE_LENGTH} bytes"
                )
            chunk = self._recv_checked(_CHUNK_SIZE)
            if not chunk:
                line = bytes(self._buffer)
                self._buffer.clear()
                return line
            self._buffer += chunk

    def read_exact(self, size: int) -> bytes:
        while len(self._buffer) < size:
            chunk = self._recv_checked(min(size - len(self._buffer), _CHUNK_SIZE))
            if not chunk:
                raise RiapProtocolError(
                    f"Short read from {self.describe()}: expected {size} bytes, "
                    f"got {len(self._buffer)}"
                )
            self._buffer += chunk
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def _recv_checked(self, size: int) -> bytes:
        if self._closed:
            raise RiapProtocolError(f"Connection to {self.describe()} is closed")
        try:
            return self._recv(size)
        except TimeoutError:
            raise RiapProtocolError(
                f"Timed out after {self.read_timeout}s waiting for {self.describe()}"
            )
        except (OverflowError, MemoryError) as e:
            raise RiapProtocolError(f"Can't read {size} bytes from {self.describe()}: {e}")
        except OSError as e:
            raise RiapProtocolError(f"Can't read from {self.describe()}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

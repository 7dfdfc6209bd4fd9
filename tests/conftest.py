"""Pytest configuration and fixtures."""

import io
import json
import os
import shutil
import socket
import sys
import tempfile
import threading
import time

import pytest

from riap_tools.client.config import RiapConfig
from riap_tools.client.transport import BufferedConnection

PIPE_SERVER = r'''
import json
import os
import sys
import time

stdin = sys.stdin.buffer
stdout = sys.stdout.buffer
mode = sys.argv[1] if len(sys.argv) > 1 else "echo"

while True:
    line = stdin.readline()
    if not line:
        break
    if line[:1] == b"j":
        data = line[1:].rstrip(b"\r\n")
    elif line[:1] == b"J":
        data = stdin.read(int(line[1:]))
        stdin.readline()
    else:
        break
    req = json.loads(data)
    if mode == "exit":
        break
    if mode == "garbage":
        stdout.write(b"hello\r\n")
        stdout.flush()
        continue
    if mode == "sleep":
        time.sleep(5)
    res = [200, "OK", {"req": req, "argv": sys.argv[1:], "pid": os.getpid()}]
    payload = json.dumps(res).encode()
    stdout.write(b"J%d\r\n" % len(payload) + payload + b"\r\n")
    stdout.flush()
'''


def frame_response(value) -> bytes:
    """Encode ``value`` the way a Riap::Simple server answers."""
    payload = json.dumps(value, separators=(",", ":")).encode()
    return b"J%d\r\n" % len(payload) + payload + b"\r\n"


class CloseConnection:
    """Handler return value: hang up without answering."""


class FakeRiapServer:
    """Threaded Riap::Simple server on a TCP port or Unix socket.

    ``handler(request) -> value`` produces the reply: a JSON value is framed,
    ``bytes`` are sent raw, ``CloseConnection`` hangs up.
    """

    def __init__(self, family=socket.AF_INET, address=("127.0.0.1", 0), handler=None,
                 close_after_reply=False):
        self.handler = handler or (lambda req: [200, "OK", req])
        self.close_after_reply = close_after_reply
        self.requests: list[dict] = []
        self.raw_frames: list[bytes] = []
        self.connections = 0
        self._listener = socket.socket(family, socket.SOCK_STREAM)
        if family == socket.AF_INET:
            self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(address)
        self._listener.listen(8)
        self._listener.settimeout(0.1)
        self.address = self._listener.getsockname()
        self._stopped = threading.Event()
        self._clients: list[socket.socket] = []
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self.address[1]

    def _accept_loop(self):
        while not self._stopped.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self.connections += 1
            self._clients.append(conn)
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, conn: socket.socket):
        conn.settimeout(None)
        rfile = conn.makefile("rb")
        try:
            while True:
                line = rfile.readline()
                if not line:
                    return
                if line[:1] == b"j":
                    frame, data = line, line[1:].rstrip(b"\r\n")
                else:
                    data = rfile.read(int(line[1:]))
                    frame = line + data + rfile.readline()
                self.raw_frames.append(frame)
                req = json.loads(data)
                self.requests.append(req)
                reply = self.handler(req)
                if reply is CloseConnection:
                    return
                conn.sendall(reply if isinstance(reply, bytes) else frame_response(reply))
                if self.close_after_reply:
                    return
        except OSError:
            return
        finally:
            rfile.close()
            conn.close()

    def stop(self):
        self._stopped.set()
        self._listener.close()
        for conn in self._clients:
            try:
                conn.close()
            except OSError:
                pass
        self._thread.join(timeout=2)


class ScriptedConnection(BufferedConnection):
    """In-memory connection replaying canned server output."""

    def __init__(self, server_output: bytes = b"", alive: bool = True):
        super().__init__(read_timeout=None)
        self.output = io.BytesIO(server_output)
        self.written = bytearray()
        self.alive = alive
        self.close_calls = 0

    def describe(self) -> str:
        return "scripted"

    def _recv(self, size: int) -> bytes:
        return self.output.read(size)

    def _send_all(self, data: bytes) -> None:
        self.written += data

    def is_alive(self) -> bool:
        return self.alive and not self._closed

    def close(self) -> None:
        self.close_calls += 1
        self._closed = True


def wait_until(predicate, timeout: float = 3.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def config():
    """Create a test config with fast retries and short deadlines."""
    return RiapConfig(
        retries=2,
        retry_delay=0,
        connection_cache_size=32,
        connect_timeout=5.0,
        read_timeout=5.0,
    )


@pytest.fixture
def tcp_server():
    """Start a TCP server echoing each request back in an envelope."""
    server = FakeRiapServer()
    yield server
    server.stop()


@pytest.fixture
def short_tmp():
    """Short temporary directory; Unix socket paths are length-limited."""
    path = tempfile.mkdtemp(prefix="riap-")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def unix_server(short_tmp):
    """Start a Unix socket server echoing each request back."""
    path = os.path.join(short_tmp, "riap.sock")
    server = FakeRiapServer(family=socket.AF_UNIX, address=path)
    server.path = path
    yield server
    server.stop()


@pytest.fixture
def pipe_server_cmd(tmp_path):
    """Command vector for a pipe server: [python, script]."""
    script = tmp_path / "pipe_server.py"
    script.write_text(PIPE_SERVER)
    return [sys.executable, str(script)]


@pytest.fixture
def mock_sleep():
    """Sleep replacement recording retry pauses."""
    from unittest.mock import MagicMock

    return MagicMock()

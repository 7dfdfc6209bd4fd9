"""Pipe transport: talk to a child process over its stdin/stdout.

The program is spawned directly from its argument vector, never through a
shell, so arguments reach it literally. The program may itself be a wrapper
such as ``ssh -T user@host /path/to/server``.
"""

import logging
import os
import selectors
import shlex
import subprocess

from .config import RiapConfig
from .exceptions import RiapConnectionError
from .target import PipeTarget
from .transport import BufferedConnection

logger = logging.getLogger("riap-tools")


def is_process_alive(proc: subprocess.Popen) -> bool:
    """Check whether a child process is still running.

    ``poll`` is a zero-timeout wait, so an exited child is reaped here rather
    than left as a zombie. On POSIX the pid is additionally probed with
    signal 0.
    """
    if proc.poll() is not None:
        return False
    if os.name != "posix":
        return True
    try:
        os.kill(proc.pid, 0)
    except (ProcessLookupError, PermissionError):
        return False
    return True


class PipeConnection(BufferedConnection):
    """A running child process; we write its stdin and read its stdout."""

    def __init__(self, proc: subprocess.Popen, command: str, read_timeout: float | None = None):
        super().__init__(read_timeout)
        self.proc = proc
        self.command = command
        self._selector = selectors.DefaultSelector()
        self._selector.register(proc.stdout, selectors.EVENT_READ)

    @property
    def pid(self) -> int:
        return self.proc.pid

    def describe(self) -> str:
        return f"process {self.proc.pid} ({self.command})"

    def _recv(self, size: int) -> bytes:
        if not self._selector.select(self.read_timeout):
            raise TimeoutError("read timed out")
        return os.read(self.proc.stdout.fileno(), size)

    def _send_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = self.proc.stdin.write(view)
            view = view[written:]
        self.proc.stdin.flush()

    def is_alive(self) -> bool:
        if self._closed:
            return False
        return is_process_alive(self.proc)

    def close(self) -> None:
        """Close both pipes and reap the child if it already exited.

        Closing stdin tells a well-behaved server to exit. The reap does not
        block; a child still running at this point is left to ``subprocess``.
        """
        if self._closed:
            return
        self._closed = True
        self._selector.close()
        for stream in (self.proc.stdin, self.proc.stdout):
            try:
                stream.close()
            except OSError as e:
                logger.debug(f"Error closing pipe of {self.describe()}: {e}")
        if self.proc.poll() is None:
            logger.debug(f"Process {self.proc.pid} still running after close")


def format_command(target: PipeTarget) -> str:
    """Render the command line for messages."""
    return shlex.join(target.argv)


def spawn_pipe(target: PipeTarget, config: RiapConfig) -> PipeConnection:
    """Start the program and return a connection to its stdin/stdout.

    Raises:
        RiapConnectionError: If the program cannot be started
    """
    command = format_command(target)
    try:
        proc = subprocess.Popen(
            target.argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            bufsize=0,
        )
    except (OSError, ValueError) as e:
        raise RiapConnectionError(f"Can't spawn {command}: {e}")
    logger.debug(f"Spawned process {proc.pid}: {command}")
    return PipeConnection(proc, command, config.read_timeout)

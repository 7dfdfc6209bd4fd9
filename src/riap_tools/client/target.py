"""Server URL classification.

A Riap::Simple server URL names both the transport and the endpoint:

    riap+tcp://host:port[/uri]
    riap+unix:<escaped-socket-path>[//uri]
    riap+pipe:<escaped-program>[//<escaped-arg>/<escaped-arg>...][//uri]

``classify`` turns such a URL into one of ``TcpTarget``, ``UnixTarget`` or
``PipeTarget``. Socket and program paths are resolved to their real absolute
path here, so two URLs spelling the same endpoint differently share a cache
key and therefore a connection.
"""

import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence, Union
from urllib.parse import quote, unquote, unquote_to_bytes

from .exceptions import (
    RiapMalformedURLError,
    RiapPathResolutionError,
    RiapSchemeError,
)

_TCP_RE = re.compile(r"//(\[[^\]/]+\]|[^:/\[\]]+):(\d+)(/.*)?", re.DOTALL)
# Greedy: the socket path runs up to the last "//".
_UNIX_URI_RE = re.compile(r"(.+)/(/.*)", re.DOTALL)
# Non-greedy: program ends at the first "//", arguments at the next one.
_PIPE_ARGS_URI_RE = re.compile(r"(.+?)//(.*?)/(/.*)", re.DOTALL)
_PIPE_ARGS_RE = re.compile(r"(.+?)//(.*)", re.DOTALL)

_TCP_EXAMPLE = "riap+tcp://host:1234 or riap+tcp://host:1234/uri"
_UNIX_EXAMPLE = "riap+unix:/path/to/unix/socket or riap+unix:/path/to/unix/socket//uri"
_PIPE_EXAMPLE = (
    "riap+pipe:/path/to/prog or riap+pipe:/path/to/prog//arg1/arg2 or "
    "riap+pipe:/path/to/prog//arg1/arg2//uri"
)


@dataclass(frozen=True)
class TcpTarget:
    """A server listening on a TCP port."""

    host: str
    port: int
    embedded_uri: str | None = None

    scheme = "riap+tcp"

    @property
    def cache_key(self) -> str:
        return f"tcp:{self.host.lower()}:{self.port}"

    @property
    def connect_host(self) -> str:
        """Host as passed to the socket layer (IPv6 brackets removed)."""
        if self.host.startswith("[") and self.host.endswith("]"):
            return self.host[1:-1]
        return self.host

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class UnixTarget:
    """A server listening on a Unix domain socket."""

    socket_path: str
    embedded_uri: str | None = None

    scheme = "riap+unix"

    @property
    def cache_key(self) -> str:
        return f"unix:{self.socket_path}"


@dataclass(frozen=True)
class PipeTarget:
    """A program speaking the protocol on its stdin/stdout."""

    program_path: str
    program_args: tuple[str, ...] = field(default_factory=tuple)
    embedded_uri: str | None = None

    scheme = "riap+pipe"

    @property
    def cache_key(self) -> str:
        return f"pipe:{self.program_path} " + " ".join(self.program_args)

    @property
    def argv(self) -> list[str]:
        return [self.program_path, *self.program_args]


TargetDescriptor = Union[TcpTarget, UnixTarget, PipeTarget]


def split_scheme(url: str) -> tuple[str, str]:
    """Split ``url`` into a lowercased scheme and the opaque remainder."""
    scheme, sep, opaque = url.partition(":")
    if not sep or not scheme:
        raise RiapSchemeError(
            f"Please supply only riap+tcp/riap+unix/riap+pipe URL, got: {url}"
        )
    return scheme.lower(), opaque


def classify(url: str) -> TargetDescriptor:
    """Classify a server URL into a target descriptor.

    Raises:
        RiapSchemeError: Unsupported scheme
        RiapMalformedURLError: Supported scheme, unusable remainder
        RiapPathResolutionError: Socket or program path does not exist
    """
    scheme, opaque = split_scheme(url)

    if scheme == "riap+tcp":
        return _classify_tcp(opaque)
    elif scheme == "riap+unix":
        return _classify_unix(opaque)
    elif scheme == "riap+pipe":
        return _classify_pipe(opaque)
    raise RiapSchemeError(
        f"Please supply only riap+tcp/riap+unix/riap+pipe URL, got scheme: {scheme}"
    )


def _classify_tcp(opaque: str) -> TcpTarget:
    m = _TCP_RE.fullmatch(opaque)
    if not m:
        raise RiapMalformedURLError(
            f"Invalid riap+tcp URL, please use this format: {_TCP_EXAMPLE}"
        )
    host, port, uri = m.group(1), int(m.group(2)), m.group(3)
    if not 0 < port < 65536:
        raise RiapMalformedURLError(
            f"Invalid riap+tcp URL, port {port} out of range: {_TCP_EXAMPLE}"
        )
    return TcpTarget(host=host, port=port, embedded_uri=uri)


def _classify_unix(opaque: str) -> UnixTarget:
    if not opaque:
        raise RiapMalformedURLError(
            f"Invalid riap+unix URL, please use this format: {_UNIX_EXAMPLE}"
        )
    m = _UNIX_URI_RE.fullmatch(opaque)
    if m:
        path, uri = unquote_path(m.group(1)), m.group(2)
    else:
        path, uri = unquote_path(opaque), None
    return UnixTarget(socket_path=resolve_path(path), embedded_uri=uri)


def _classify_pipe(opaque: str) -> PipeTarget:
    if not opaque:
        raise RiapMalformedURLError(
            f"Invalid riap+pipe URL, please use this format: {_PIPE_EXAMPLE}"
        )
    uri = None
    m = _PIPE_ARGS_URI_RE.fullmatch(opaque)
    if m:
        path, raw_args, uri = m.group(1), m.group(2), m.group(3)
    else:
        m = _PIPE_ARGS_RE.fullmatch(opaque)
        if m:
            path, raw_args = m.group(1), m.group(2)
        else:
            path, raw_args = opaque, ""
    return PipeTarget(
        program_path=resolve_program(unquote_path(path)),
        program_args=split_args(raw_args),
        embedded_uri=uri,
    )


def split_args(raw_args: str) -> tuple[str, ...]:
    """Split a slash-separated argument segment and unescape each argument.

    Trailing empty fields are dropped, so ``"a/b/"`` is ``("a", "b")`` and an
    empty segment means no arguments.
    """
    parts = raw_args.split("/")
    while parts and parts[-1] == "":
        parts.pop()
    return tuple(unquote(p) for p in parts)


def unquote_path(value: str) -> str:
    """Unescape a socket or program path, keeping non-UTF-8 bytes intact."""
    return os.fsdecode(unquote_to_bytes(value))


def resolve_path(path: str) -> str:
    """Resolve ``path`` to its real absolute form; it must exist."""
    try:
        return str(Path(path).resolve(strict=True))
    except (OSError, RuntimeError) as e:
        raise RiapPathResolutionError(f"Can't find absolute path for {path}: {e}")


def resolve_program(path: str) -> str:
    """Resolve a program path, falling back to PATH for bare names."""
    if os.sep not in path and not os.path.exists(path):
        found = shutil.which(path)
        if found:
            path = found
    return resolve_path(path)


def tcp_url(host: str, port: int, uri: str | None = None) -> str:
    """Build a riap+tcp URL."""
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"riap+tcp://{host}:{port}" + _uri_suffix(uri)


def unix_url(socket_path: str, uri: str | None = None) -> str:
    """Build a riap+unix URL, escaping the socket path."""
    url = "riap+unix:" + quote(os.fsencode(socket_path), safe="")
    if uri:
        url += "/" + _uri_suffix(uri)
    return url


def pipe_url(cmd: Sequence[str], uri: str | None = None) -> str:
    """Build a riap+pipe URL from a command vector ``[program, *args]``.

    Every element is escaped, so arguments may contain slashes. Empty
    arguments cannot be expressed: "//" would be read as the start of the uri.
    """
    if not cmd:
        raise ValueError("Command must contain at least the program path")
    if any(arg == "" for arg in cmd[1:]):
        raise ValueError(f"Empty argument cannot be put in a riap+pipe URL: {list(cmd)!r}")
    url = "riap+pipe:" + quote(os.fsencode(cmd[0]), safe="") + "//"
    url += "/".join(quote(arg, safe="") for arg in cmd[1:])
    if uri:
        url += "/" + _uri_suffix(uri)
    return url


def _uri_suffix(uri: str | None) -> str:
    if not uri:
        return ""
    return uri if uri.startswith("/") else "/" + uri

"""Riap::Simple client.

This package provides the client library for talking to Riap::Simple
servers. It supports three transports, selected by the server URL:

TCP:
    riap+tcp://host:port/uri

Unix domain socket:
    riap+unix:/path/to/socket//uri

Pipe (program on stdin/stdout, possibly an ssh wrapper):
    riap+pipe:/path/to/prog//arg1/arg2//uri

Usage:
    from riap_tools.client import RiapClient, RiapConfig

    client = RiapClient()
    res = client.request("call", "riap+tcp://localhost:5678/Foo/Bar/func",
                         {"args": {"a": 1}})

    # Explicit configuration
    config = RiapConfig(retries=0, read_timeout=5)
    client = RiapClient(config)
"""

from .api import RiapClient
from .cache import ConnectionCache
from .config import RiapConfig
from .exceptions import (
    RiapConnectionError,
    RiapEncodeError,
    RiapError,
    RiapMalformedURLError,
    RiapMissingUriError,
    RiapPathResolutionError,
    RiapProtocolError,
    RiapSchemeError,
    RiapURLError,
    RiapValidationError,
)
from .factory import create_connection
from .pipe_transport import PipeConnection
from .socket_transport import SocketConnection
from .target import (
    PipeTarget,
    TargetDescriptor,
    TcpTarget,
    UnixTarget,
    classify,
    pipe_url,
    tcp_url,
    unix_url,
)
from .transport import RiapConnection

__all__ = [
    # Main API
    "RiapClient",
    "RiapConfig",
    # Targets
    "TargetDescriptor",
    "TcpTarget",
    "UnixTarget",
    "PipeTarget",
    "classify",
    "tcp_url",
    "unix_url",
    "pipe_url",
    # Connections
    "RiapConnection",
    "ConnectionCache",
    "create_connection",
    "SocketConnection",
    "PipeConnection",
    # Exceptions
    "RiapConnectionError",
    "RiapEncodeError",
    "RiapError",
    "RiapMalformedURLError",
    "RiapMissingUriError",
    "RiapPathResolutionError",
    "RiapProtocolError",
    "RiapSchemeError",
    "RiapURLError",
    "RiapValidationError",
]

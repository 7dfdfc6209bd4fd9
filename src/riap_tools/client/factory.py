"""Connection factory.

Picks the connector for a classified target. Transport selection happens
once, in ``classify``; everything downstream dispatches on the target type.
"""

from .config import RiapConfig
from .pipe_transport import spawn_pipe
from .socket_transport import connect_tcp, connect_unix
from .target import PipeTarget, TargetDescriptor, TcpTarget, UnixTarget
from .transport import RiapConnection


def create_connection(target: TargetDescriptor, config: RiapConfig | None = None) -> RiapConnection:
    """Open a fresh connection to ``target``.

    Args:
        target: Result of ``classify``
        config: Client configuration. If None, loads from environment.

    Returns:
        A live connection implementing the RiapConnection protocol.

    Raises:
        RiapConnectionError: If connecting or spawning fails (retryable).
        TypeError: If ``target`` is not a known target type.

    Example:
        target = classify("riap+tcp://localhost:5678/Foo/")
        conn = create_connection(target)
    """
    config = config or RiapConfig()

    if isinstance(target, TcpTarget):
        return connect_tcp(target, config)
    elif isinstance(target, UnixTarget):
        return connect_unix(target, config)
    elif isinstance(target, PipeTarget):
        return spawn_pipe(target, config)
    raise TypeError(f"Unknown target type: {type(target).__name__}")

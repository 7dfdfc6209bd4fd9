"""High-level Riap::Simple client.

This module provides the request engine: classify the server URL, reuse or
open a connection through the cache, and perform one framed exchange.
"""

import logging
import time
from typing import Any, Callable, Sequence

from .cache import ConnectionCache
from .config import RiapConfig
from .exceptions import RiapConnectionError, RiapMissingUriError, RiapValidationError
from .factory import create_connection
from .framing import encode_request_frame, exchange
from .retry import RetryState, get_retrying
from .target import (
    PipeTarget,
    TargetDescriptor,
    TcpTarget,
    UnixTarget,
    classify,
    pipe_url,
    split_scheme,
    tcp_url,
    unix_url,
)
from .transport import RiapConnection
from .validation import check_request

logger = logging.getLogger("riap-tools")


class RiapClient:
    """Riap::Simple client over riap+tcp, riap+unix and riap+pipe URLs.

    Connections (and pipe processes) are cached per endpoint, so calling the
    same server or program repeatedly reuses one connection.

    Usage:
        client = RiapClient()
        res = client.request("call", "riap+tcp://localhost:5678/Foo/Bar/func",
                             {"args": {"a1": 1, "a2": 2}})

        # Unix socket; "//" separates the socket path from the uri
        res = client.request("call", "riap+unix:/var/run/api.sock//Foo/Bar/func")

        # Program over pipe: program//arg1/arg2//uri
        res = client.request("call", "riap+pipe:/path/to/prog//arg1/arg2//Foo/Bar/func")

        # Helpers building the URL; the uri goes in extra
        res = client.request_pipe("call", ["ssh", "-T", "user@host", "/path/to/prog"],
                                  {"uri": "/Foo/Bar/func"})
    """

    def __init__(
        self,
        config: RiapConfig | None = None,
        connector: Callable[[TargetDescriptor, RiapConfig], RiapConnection] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        **overrides: Any,
    ):
        """Initialize the client.

        Args:
            config: Configuration (loads from environment if None)
            connector: Optional replacement for ``create_connection`` (for
                testing/advanced use)
            sleep: Function used to wait between retries
            **overrides: Config fields overriding ``config``, e.g. ``retries=0``
        """
        config = config or RiapConfig()
        if overrides:
            config = RiapConfig(**{**config.model_dump(), **overrides})
        self.config = config
        self._connector = connector or create_connection
        self._sleep = sleep
        self._cache = ConnectionCache(self.config.connection_cache_size)
        self.last_retry_state: RetryState | None = None

    def __enter__(self) -> "RiapClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - drop all cached connections."""
        self.close()
        return False

    @property
    def cache(self) -> ConnectionCache:
        return self._cache

    def close(self) -> None:
        """Close every cached connection and release pipe processes."""
        self._cache.invalidate_all()

    def _prepare(
        self,
        action: str,
        server_url: str,
        extra: dict | None,
    ) -> tuple[TargetDescriptor, dict]:
        """Validate inputs, classify the URL and build the request dict."""
        logger.debug(
            f"=> request(action={action!r}, server_url={server_url!r}, extra={extra!r})"
        )
        if not server_url:
            raise RiapValidationError("Please specify server_url")
        extra = dict(extra or {})
        check_request({**extra, "action": action})

        target = classify(server_url)

        uri = target.embedded_uri or extra.get("uri")
        if not uri:
            raise RiapMissingUriError("Please specify request key 'uri'")

        req = {"action": action, "uri": uri}
        req.update((k, v) for k, v in extra.items() if k not in ("action", "uri"))
        logger.debug(f"Parsed URL, target={target!r}, uri={uri}")
        return target, req

    def parse(self, action: str, server_url: str, extra: dict | None = None) -> dict[str, Any]:
        """Classify ``server_url`` without connecting.

        Returns:
            Dict with keys scheme, host, port, path, args and uri; fields
            that do not apply to the transport are None.
        """
        target, req = self._prepare(action, server_url, extra)
        result = {
            "scheme": split_scheme(server_url)[0],
            "host": None,
            "port": None,
            "path": None,
            "args": None,
            "uri": req["uri"],
        }
        if isinstance(target, TcpTarget):
            result.update(host=target.host, port=target.port)
        elif isinstance(target, UnixTarget):
            result.update(path=target.socket_path)
        elif isinstance(target, PipeTarget):
            result.update(path=target.program_path, args=list(target.program_args))
        return result

    def request(self, action: str, server_url: str, extra: dict | None = None) -> Any:
        """Send a Riap request to ``server_url`` and return the response.

        Args:
            action: Riap action, e.g. "call", "meta", "info"
            server_url: riap+tcp, riap+unix or riap+pipe URL
            extra: Additional request keys (args, uri, v, ...)

        Returns:
            The decoded server response, unchanged (normally an enveloped
            result ``[status, message, result, meta]``)

        Raises:
            RiapValidationError: Bad request or missing uri
            RiapURLError: Unusable server URL
            RiapConnectionError: Could not connect, even after retrying
            RiapEncodeError: Request is not JSON-encodable
            RiapProtocolError: Exchange failed on an established connection
        """
        target, req = self._prepare(action, server_url, extra)
        frame = encode_request_frame(req)
        key = target.cache_key
        state = RetryState()
        self.last_retry_state = state

        while True:
            conn = self._acquire(target, state)
            with conn.lock:
                if conn.closed:
                    # Invalidated by a concurrent caller while we waited.
                    continue
                try:
                    return exchange(conn, frame)
                except BaseException:
                    # The stream may be mid-frame; never reuse it.
                    self._cache.invalidate(key, conn)
                    raise

    def _acquire(self, target: TargetDescriptor, state: RetryState) -> RiapConnection:
        """Get a live connection for ``target``, retrying connect failures."""
        key = target.cache_key
        try:
            for attempt in get_retrying(
                self.config.retries, self.config.retry_delay, state, self._sleep
            ):
                with attempt:
                    conn, created = self._cache.get_or_create(
                        key, lambda: self._connector(target, self.config)
                    )
                    if created:
                        logger.debug(f"Opened new connection {key}")
                    return conn
        except RiapConnectionError as e:
            raise RiapConnectionError(f"{e.message} (retried)")
        raise AssertionError("unreachable")

    def request_tcp(self, action: str, hostport: Sequence, extra: dict | None = None) -> Any:
        """Request a server at ``(host, port)``; put the uri in ``extra``."""
        host, port = hostport
        return self.request(action, tcp_url(host, port), extra)

    def request_unix(self, action: str, sockpath: str, extra: dict | None = None) -> Any:
        """Request a server on Unix socket ``sockpath``; put the uri in ``extra``."""
        return self.request(action, unix_url(sockpath), extra)

    def request_pipe(self, action: str, cmd: Sequence[str], extra: dict | None = None) -> Any:
        """Request a program ``[path, *args]`` over a pipe; put the uri in ``extra``."""
        return self.request(action, pipe_url(cmd), extra)

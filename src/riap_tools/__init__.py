"""Riap Tools - Riap::Simple client library and CLI."""

from riap_tools.client import RiapClient
from riap_tools.client.config import RiapConfig
from riap_tools.client.exceptions import (
    RiapConnectionError,
    RiapError,
    RiapProtocolError,
    RiapURLError,
    RiapValidationError,
)

try:
    from importlib.metadata import version
    __version__ = version("riap-tools")
except Exception:
    __version__ = "0.1.0"  # Fallback for development

__all__ = [
    "RiapClient",
    "RiapConfig",
    "RiapConnectionError",
    "RiapError",
    "RiapProtocolError",
    "RiapURLError",
    "RiapValidationError",
    "__version__",
]

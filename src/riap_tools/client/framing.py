"""Riap::Simple wire framing.

Request (client to server), chosen by encoded size:

    j<json>\\r\\n                      if the JSON is at most 1000 bytes
    J<length>\\r\\n<json>\\r\\n          otherwise

Response (server to client), always length-prefixed:

    J<length>\\r\\n<json>\\r\\n
"""

import json
import logging
import re
from typing import Any

from .exceptions import RiapEncodeError, RiapProtocolError
from .transport import RiapConnection

logger = logging.getLogger("riap-tools")

CRLF = b"\r\n"
SHORT_FRAME_MAX = 1000

_RESPONSE_LINE_RE = re.compile(rb"J(\d+)\r?\n")


def encode_json(value: Any) -> bytes:
    """Encode ``value`` as compact UTF-8 JSON.

    Raises:
        RiapEncodeError: If ``value`` is not JSON-encodable
    """
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise RiapEncodeError(f"Can't encode request as JSON: {e}")
    return text.encode("utf-8")


def decode_json(data: bytes) -> Any:
    """Decode UTF-8 JSON; any JSON value is accepted.

    Raises:
        RiapProtocolError: If ``data`` is not valid UTF-8 JSON
    """
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise RiapProtocolError(f"Invalid JSON response from server: {e}")


def encode_request_frame(request: dict) -> bytes:
    """Build the complete wire frame for ``request``."""
    payload = encode_json(request)
    if len(payload) > SHORT_FRAME_MAX:
        return b"J" + str(len(payload)).encode("ascii") + CRLF + payload + CRLF
    return b"j" + payload + CRLF


def parse_response_line(line: bytes) -> int:
    """Return the payload length announced by a response header line.

    Raises:
        RiapProtocolError: If the line is empty or not ``J<digits>``
    """
    if not line:
        raise RiapProtocolError("Empty response from server")
    m = _RESPONSE_LINE_RE.fullmatch(line)
    if not m:
        raise RiapProtocolError(
            f"Invalid response line from server: {line.decode('utf-8', 'replace').rstrip()}"
        )
    return int(m.group(1))


def read_response_frame(conn: RiapConnection) -> Any:
    """Read one response frame from ``conn`` and decode its payload."""
    line = conn.readline()
    logger.debug(f"Got line from server: {line!r}")
    size = parse_response_line(line)
    logger.debug(f"Reading {size} bytes from server ...")
    payload = conn.read_exact(size)
    # CRLF after the payload
    conn.readline()
    return decode_json(payload)


def exchange(conn: RiapConnection, frame: bytes) -> Any:
    """Send an encoded request frame on ``conn`` and return the decoded response."""
    conn.write(frame)
    logger.debug(f"Sent request to server: {frame!r}")
    return read_response_frame(conn)

"""Tests for Riap::Simple wire framing."""

import json

import pytest

from conftest import ScriptedConnection, frame_response
from riap_tools.client.exceptions import RiapEncodeError, RiapProtocolError
from riap_tools.client.framing import (
    SHORT_FRAME_MAX,
    encode_json,
    encode_request_frame,
    exchange,
    parse_response_line,
    read_response_frame,
)


def _padded_request(size: int) -> dict:
    """A request whose compact JSON encoding is exactly ``size`` bytes."""
    base = len(encode_json({"action": "call", "uri": "/x", "pad": ""}))
    return {"action": "call", "uri": "/x", "pad": "a" * (size - base)}


class TestEncodeRequestFrame:
    """Tests for outbound frames."""

    def test_short_frame(self):
        """Test the documented example request."""
        req = {"action": "call", "uri": "/Foo/Bar/func", "args": {"a": 1}}
        frame = encode_request_frame(req)
        assert frame == b'j{"action":"call","uri":"/Foo/Bar/func","args":{"a":1}}\r\n'

    def test_exactly_1000_bytes_is_short(self):
        """Test the boundary: 1000 bytes still uses the short form."""
        req = _padded_request(SHORT_FRAME_MAX)
        payload = encode_json(req)
        assert len(payload) == 1000
        assert encode_request_frame(req) == b"j" + payload + b"\r\n"

    def test_1001_bytes_is_long(self):
        """Test the boundary: 1001 bytes switches to the length-prefixed form."""
        req = _padded_request(SHORT_FRAME_MAX + 1)
        payload = encode_json(req)
        assert len(payload) == 1001
        assert encode_request_frame(req) == b"J1001\r\n" + payload + b"\r\n"

    def test_length_counts_utf8_bytes(self):
        """Test multi-byte characters count by encoded size."""
        req = {"action": "call", "uri": "/x", "pad": "é" * 600}
        frame = encode_request_frame(req)
        payload = encode_json(req)
        assert len(payload) > 1000 > len(json.dumps(req, ensure_ascii=False, separators=(",", ":")))
        assert frame.startswith(b"J%d\r\n" % len(payload))

    @pytest.mark.parametrize("value", [
        {"action": "call", "uri": "/x", "args": {"s": {1, 2}}},
        {"action": "call", "uri": "/x", "args": {"f": float("nan")}},
        {"action": "call", "uri": "/x", "obj": object()},
    ])
    def test_unencodable(self, value):
        """Test non-JSON values raise RiapEncodeError."""
        with pytest.raises(RiapEncodeError, match="Can't encode request as JSON"):
            encode_request_frame(value)


class TestParseResponseLine:
    """Tests for response header lines."""

    def test_valid(self):
        assert parse_response_line(b"J30\r\n") == 30
        assert parse_response_line(b"J0\n") == 0

    def test_empty(self):
        """Test peer closing before answering."""
        with pytest.raises(RiapProtocolError, match="Empty response from server"):
            parse_response_line(b"")

    @pytest.mark.parametrize("line", [b"j30\r\n", b"J\r\n", b"Jabc\r\n", b"hello\r\n", b"J30"])
    def test_invalid(self, line):
        with pytest.raises(RiapProtocolError, match="Invalid response line from server"):
            parse_response_line(line)


class TestReadResponseFrame:
    """Tests for reading whole response frames."""

    def test_reads_and_decodes(self):
        """Test a framed payload is decoded unchanged."""
        conn = ScriptedConnection(frame_response([200, "OK", {"a": 1}]))
        assert read_response_frame(conn) == [200, "OK", {"a": 1}]

    def test_consumes_trailing_crlf(self):
        """Test consecutive frames on one stream are read one at a time."""
        conn = ScriptedConnection(frame_response({"n": 1}) + frame_response({"n": 2}))
        assert read_response_frame(conn) == {"n": 1}
        assert read_response_frame(conn) == {"n": 2}

    def test_non_object_payload(self):
        """Test scalar JSON values pass through."""
        conn = ScriptedConnection(b"J4\r\ntrue\r\n")
        assert read_response_frame(conn) is True

    def test_short_read(self):
        """Test the peer closing mid-payload."""
        conn = ScriptedConnection(b'J30\r\n{"a":1}')
        with pytest.raises(RiapProtocolError, match="Short read"):
            read_response_frame(conn)

    def test_invalid_json(self):
        """Test undecodable payloads."""
        conn = ScriptedConnection(b"J5\r\n{oops\r\n")
        with pytest.raises(RiapProtocolError, match="Invalid JSON response"):
            read_response_frame(conn)

    def test_invalid_utf8(self):
        conn = ScriptedConnection(b"J2\r\n\xff\xfe\r\n")
        with pytest.raises(RiapProtocolError, match="Invalid JSON response"):
            read_response_frame(conn)

    def test_oversized_length_header(self):
        """Test an absurd announced length fails as a short read."""
        conn = ScriptedConnection(b"J99999999999999999999\r\n")
        with pytest.raises(RiapProtocolError, match="Short read"):
            read_response_frame(conn)

    def test_read_size_is_bounded(self):
        """Test reads are requested in bounded chunks, never the announced size."""
        conn = ScriptedConnection(b"J10000000000\r\n" + b"x" * 10)
        sizes = []
        recv = conn._recv
        conn._recv = lambda size: sizes.append(size) or recv(size)
        with pytest.raises(RiapProtocolError, match="Short read"):
            read_response_frame(conn)
        assert max(sizes) <= 64 * 1024

    def test_overlong_line(self):
        """Test a header line without newline is bounded."""
        conn = ScriptedConnection(b"J" + b"1" * (70 * 1024))
        with pytest.raises(RiapProtocolError, match="exceeds"):
            read_response_frame(conn)


class TestExchange:
    """Tests for one request/response cycle."""

    def test_writes_frame_then_reads(self):
        """Test the frame is written and the response returned."""
        conn = ScriptedConnection(frame_response([200, "OK"]))
        frame = encode_request_frame({"action": "info", "uri": "/"})
        assert exchange(conn, frame) == [200, "OK"]
        assert bytes(conn.written) == b'j{"action":"info","uri":"/"}\r\n'

    def test_write_on_closed_connection(self):
        """Test writing to a closed connection is a protocol error."""
        conn = ScriptedConnection(frame_response([200, "OK"]))
        conn.close()
        with pytest.raises(RiapProtocolError, match="closed"):
            exchange(conn, b"j{}\r\n")

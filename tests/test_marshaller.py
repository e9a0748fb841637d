"""
Tests for the XML-RPC Marshaller.

Covers:
- Exact encoding of every value kind.
- The methodCall envelope.
- Decoding of typed, untyped and malformed values.
- decode_response: absence, nil, faults, malformed XML.
- Round trips of nested values.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import response_xml
from tracrpc.xmlrpc import ParseError, ProtocolError, RpcKind, RpcValue
from tracrpc.xmlrpc.marshaller import (
    decode_response,
    decode_value,
    encode_request,
    encode_value,
)


def _decode(value_xml: str) -> RpcValue:
    return decode_value(ET.fromstring(f"<value>{value_xml}</value>"))


def _round_trip(value: RpcValue) -> RpcValue:
    return _decode(encode_value(value))


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class TestEncodeValue:
    """Tests for encode_value."""

    def test_integer(self) -> None:
        """Test integer encoding."""
        assert encode_value(RpcValue.integer(42)) == "<i4>42</i4>"

    def test_negative_integer(self) -> None:
        """Test negative integer encoding."""
        assert encode_value(RpcValue.integer(-3)) == "<i4>-3</i4>"

    def test_boolean(self) -> None:
        """Test boolean encoding."""
        assert encode_value(RpcValue.boolean(True)) == "<boolean>1</boolean>"
        assert encode_value(RpcValue.boolean(False)) == "<boolean>0</boolean>"

    def test_double(self) -> None:
        """Test double encoding."""
        assert encode_value(RpcValue.double(1.5)) == "<double>1.5</double>"

    def test_nil(self) -> None:
        """Test nil encoding."""
        assert encode_value(RpcValue.nil()) == "<nil/>"

    def test_string_escaped(self) -> None:
        """Test that markup characters in strings are escaped."""
        encoded = encode_value(RpcValue.string("a < b & c > d"))
        assert encoded == "<string>a &lt; b &amp; c &gt; d</string>"

    def test_string_carriage_return_as_reference(self) -> None:
        """Test that CR is written as a character reference."""
        assert encode_value(RpcValue.string("a\r\nb")) == "<string>a&#13;\nb</string>"

    def test_datetime_without_date_separators(self) -> None:
        """Test the compact ISO 8601 date form."""
        encoded = encode_value(RpcValue.datetime(datetime(2024, 1, 31, 12, 5, 9)))
        assert encoded == "<dateTime.iso8601>20240131T12:05:09</dateTime.iso8601>"

    def test_array(self) -> None:
        """Test array encoding wraps each item in <value>."""
        value = RpcValue.array([RpcValue.integer(1), RpcValue.string("x")])
        assert encode_value(value) == (
            "<array><data>"
            "<value><i4>1</i4></value>"
            "<value><string>x</string></value>"
            "</data></array>"
        )

    def test_struct(self) -> None:
        """Test struct encoding with one member per key."""
        value = RpcValue.struct({"action": RpcValue.string("resolve")})
        assert encode_value(value) == (
            "<struct><member><name>action</name>"
            "<value><string>resolve</string></value>"
            "</member></struct>"
        )


class TestEncodeRequest:
    """Tests for encode_request."""

    def test_declaration(self) -> None:
        """Test that the document declares UTF-8."""
        body = encode_request("system.getAPIVersion")
        assert body.startswith(b'<?xml version="1.0" encoding="utf-8"?>')

    def test_zero_arguments(self) -> None:
        """Test that a call without arguments has an empty params element."""
        root = ET.fromstring(encode_request("system.getAPIVersion"))

        assert root.tag == "methodCall"
        assert root.findtext("methodName") == "system.getAPIVersion"
        params = root.find("params")
        assert params is not None
        assert len(params) == 0

    def test_arguments_in_order(self) -> None:
        """Test one param per argument, in argument order."""
        body = encode_request(
            "ticket.update",
            [
                RpcValue.integer(7),
                RpcValue.string(""),
                RpcValue.struct({"description": RpcValue.string("done")}),
            ],
        )
        params = ET.fromstring(body).findall("params/param")

        assert len(params) == 3
        assert params[0].findtext("value/i4") == "7"
        assert params[1].find("value/string") is not None
        assert params[2].findtext("value/struct/member/name") == "description"

    def test_non_ascii_text(self) -> None:
        """Test that non-ASCII text is written as UTF-8."""
        body = encode_request("ticket.query", [RpcValue.string("milestone=Größe")])
        assert "Größe".encode("utf-8") in body


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDecodeValue:
    """Tests for decode_value."""

    def test_i4_and_int(self) -> None:
        """Test both integer tags."""
        assert _decode("<i4>42</i4>") == RpcValue.integer(42)
        assert _decode("<int>-5</int>") == RpcValue.integer(-5)

    def test_invalid_integer(self) -> None:
        """Test that a malformed integer literal is a protocol error."""
        with pytest.raises(ProtocolError, match="Invalid <i4>"):
            _decode("<i4>forty</i4>")

    def test_integer_overflow(self) -> None:
        """Test that an out-of-range integer literal is a protocol error."""
        with pytest.raises(ProtocolError):
            _decode("<int>4294967296</int>")

    def test_untyped_integer_text(self) -> None:
        """Test that untyped numeric text is read as an integer."""
        assert _decode("7") == RpcValue.integer(7)

    def test_untyped_string_text(self) -> None:
        """Test that untyped non-numeric text is read as a string."""
        assert _decode("abc") == RpcValue.string("abc")

    def test_untyped_text_kept_raw(self) -> None:
        """Test that untyped text that is not an integer is kept as is."""
        assert _decode(" 1.5 ") == RpcValue.string(" 1.5 ")

    def test_untyped_empty(self) -> None:
        """Test that an empty value is an empty string."""
        assert _decode("") == RpcValue.string("")

    def test_boolean(self) -> None:
        """Test that only "0" is false."""
        assert _decode("<boolean>0</boolean>") == RpcValue.boolean(False)
        assert _decode("<boolean>1</boolean>") == RpcValue.boolean(True)
        assert _decode("<boolean>yes</boolean>") == RpcValue.boolean(True)

    def test_double(self) -> None:
        """Test double parsing."""
        assert _decode("<double>-0.25</double>").as_float() == pytest.approx(-0.25)
        assert _decode("<double>1e3</double>").as_float() == pytest.approx(1000.0)

    def test_boolean_text_not_trimmed(self) -> None:
        """Test that padded zero is not the literal "0" and reads as true."""
        assert _decode("<boolean> 0 </boolean>") == RpcValue.boolean(True)

    def test_double_out_of_range(self) -> None:
        """Test that a literal overflowing a double is rejected."""
        with pytest.raises(ProtocolError, match="out of range"):
            _decode("<double>1e999</double>")

    def test_invalid_double(self) -> None:
        """Test that a locale-formatted double is rejected."""
        with pytest.raises(ProtocolError, match="Invalid <double>"):
            _decode("<double>1,5</double>")

    def test_string(self) -> None:
        """Test string text and the empty string default."""
        assert _decode("<string>a &amp; b</string>") == RpcValue.string("a & b")
        assert _decode("<string/>") == RpcValue.string("")

    def test_datetime(self) -> None:
        """Test the compact date form is parsed."""
        value = _decode("<dateTime.iso8601>20240131T12:00:00</dateTime.iso8601>")
        assert value.as_datetime() == datetime(2024, 1, 31, 12, 0, 0)

    def test_datetime_with_separators(self) -> None:
        """Test that an already separated date is accepted."""
        value = _decode("<dateTime.iso8601>2024-01-31T12:00:00</dateTime.iso8601>")
        assert value.as_datetime() == datetime(2024, 1, 31, 12, 0, 0)

    def test_invalid_datetime(self) -> None:
        """Test that an unparsable date is a protocol error."""
        with pytest.raises(ProtocolError, match="dateTime.iso8601"):
            _decode("<dateTime.iso8601>yesterday</dateTime.iso8601>")

    def test_array(self) -> None:
        """Test array decoding preserves order."""
        value = _decode(
            "<array><data><value><i4>3</i4></value><value>2</value>"
            "<value><string>1</string></value></data></array>"
        )
        assert value == RpcValue.array(
            [RpcValue.integer(3), RpcValue.integer(2), RpcValue.string("1")]
        )

    def test_empty_array(self) -> None:
        """Test an array with no items."""
        assert _decode("<array><data/></array>") == RpcValue.array([])

    def test_array_without_data(self) -> None:
        """Test that <array> requires <data>."""
        with pytest.raises(ProtocolError, match="<data>"):
            _decode("<array/>")

    def test_struct(self) -> None:
        """Test struct decoding keeps member names exactly."""
        value = _decode(
            "<struct>"
            "<member><name>Status</name><value><string>new</string></value></member>"
            "<member><name>id</name><value><i4>9</i4></value></member>"
            "</struct>"
        )
        assert value.as_dict() == {
            "Status": RpcValue.string("new"),
            "id": RpcValue.integer(9),
        }

    def test_struct_duplicate_member_last_wins(self) -> None:
        """Test that a repeated member name keeps the last value."""
        value = _decode(
            "<struct>"
            "<member><name>x</name><value><i4>1</i4></value></member>"
            "<member><name>x</name><value><i4>2</i4></value></member>"
            "</struct>"
        )
        assert value == RpcValue.struct({"x": RpcValue.integer(2)})

    def test_struct_member_without_value(self) -> None:
        """Test that an incomplete member is a protocol error."""
        with pytest.raises(ProtocolError, match="<member>"):
            _decode("<struct><member><name>x</name></member></struct>")

    def test_nil(self) -> None:
        """Test nil decoding."""
        assert _decode("<nil/>") == RpcValue.nil()

    def test_unknown_tag(self) -> None:
        """Test that an unknown type tag is a protocol error."""
        with pytest.raises(ProtocolError, match="Unrecognized XML-RPC type <base64>"):
            _decode("<base64>AAAA</base64>")

    def test_whitespace_around_type_element(self) -> None:
        """Test that indentation around the type element is ignored."""
        assert _decode("\n  <i4>5</i4>\n") == RpcValue.integer(5)


class TestDecodeResponse:
    """Tests for decode_response."""

    def test_no_params_is_absence(self) -> None:
        """Test that a response without <param> decodes to None."""
        assert decode_response(response_xml(None)) is None

    def test_nil_is_not_absence(self) -> None:
        """Test that an explicit nil is a value, not absence."""
        result = decode_response(response_xml("<nil/>"))
        assert result is not None
        assert result.kind is RpcKind.NIL

    def test_first_param_only(self) -> None:
        """Test that only the first <param> is decoded."""
        body = (
            b"<methodResponse><params>"
            b"<param><value><i4>1</i4></value></param>"
            b"<param><value><i4>2</i4></value></param>"
            b"</params></methodResponse>"
        )
        assert decode_response(body) == RpcValue.integer(1)

    def test_malformed_xml(self) -> None:
        """Test that a body that is not XML is a parse error."""
        with pytest.raises(ParseError, match="not well-formed"):
            decode_response(b"<html><body>502 Bad Gateway</body>")

    def test_fault(self) -> None:
        """Test that a fault response is a protocol error with its message."""
        body = (
            b"<methodResponse><fault><value><struct>"
            b"<member><name>faultCode</name><value><int>404</int></value></member>"
            b"<member><name>faultString</name><value><string>Ticket 9 does not exist."
            b"</string></value></member>"
            b"</struct></value></fault></methodResponse>"
        )
        with pytest.raises(ProtocolError, match="404: Ticket 9 does not exist."):
            decode_response(body)

    def test_param_without_value(self) -> None:
        """Test that an empty <param> is a protocol error."""
        with pytest.raises(ProtocolError):
            decode_response(b"<methodResponse><params><param/></params></methodResponse>")


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------


class TestRoundTrip:
    """Tests that encoding then decoding yields the original value."""

    def test_scalars(self) -> None:
        """Test each scalar kind survives a round trip."""
        for value in (
            RpcValue.integer(-2**31),
            RpcValue.boolean(False),
            RpcValue.string("line 1\nline 2 <tag> & 'quote'"),
            RpcValue.datetime(datetime(1999, 12, 31, 23, 59, 59)),
            RpcValue.nil(),
        ):
            assert _round_trip(value) == value

    def test_double(self) -> None:
        """Test double round trip within floating tolerance."""
        assert _round_trip(RpcValue.double(0.1 + 0.2)).as_float() == pytest.approx(0.3)

    def test_array_of_struct(self) -> None:
        """Test an array of structs holding arrays, four levels deep."""
        value = RpcValue.from_python([
            {"id": 1, "tags": [["a", "b"], [True, None]]},
            {"id": 2, "tags": []},
        ])
        assert _round_trip(value) == value

    def test_struct_of_array(self) -> None:
        """Test a struct of arrays holding structs, four levels deep."""
        value = RpcValue.from_python({
            "tickets": [{"changes": [datetime(2024, 5, 1, 8, 30), 2.5]}],
            "empty": {},
        })
        assert _round_trip(value) == value

    def test_carriage_returns(self) -> None:
        """Test that CRLF text survives in strings and member names."""
        value = RpcValue.from_python({"line\r\nname": "first\r\nsecond\rthird"})
        assert _round_trip(value) == value

    def test_request_with_carriage_returns(self) -> None:
        """Test that CRLF text survives a full request envelope."""
        body = encode_request("ticket.update", [RpcValue.string("Steps:\r\n1. Save")])
        param = ET.fromstring(body).find("params/param/value")
        assert decode_value(param) == RpcValue.string("Steps:\r\n1. Save")

    def test_aware_datetime(self) -> None:
        """Test that an aware datetime comes back as the same UTC instant."""
        aware = datetime(2024, 1, 31, 12, 0, 0, tzinfo=timezone.utc)
        decoded = _round_trip(RpcValue.datetime(aware)).as_datetime()
        assert decoded.replace(tzinfo=timezone.utc) == aware

    def test_offset_datetime(self) -> None:
        """Test that a non-UTC offset is folded into the UTC wall time."""
        aware = datetime(2024, 1, 31, 9, 30, 0, tzinfo=timezone(timedelta(hours=-5)))
        decoded = _round_trip(RpcValue.datetime(aware))
        assert decoded == RpcValue.datetime(datetime(2024, 1, 31, 14, 30, 0))

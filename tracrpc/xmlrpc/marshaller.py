"""
XML-RPC Marshaller.

Encodes RpcValue trees into XML-RPC markup and decodes XML-RPC
responses back into RpcValue trees.

Encoding streams through xml.sax.saxutils.XMLGenerator, which writes
empty elements in their short form (``<nil/>``). Text is escaped here,
with carriage returns as ``&#13;``.
Decoding walks an xml.etree.ElementTree document.

Wire mapping::

    Integer   <i4>N</i4>
    Boolean   <boolean>0|1</boolean>
    Double    <double>N</double>
    String    <string>TEXT</string>
    DateTime  <dateTime.iso8601>YYYYMMDDTHH:MM:SS</dateTime.iso8601>
    Array     <array><data><value>...</value>*</data></array>
    Struct    <struct><member><name>K</name><value>...</value></member>*</struct>
    Nil       <nil/>
"""

from __future__ import annotations

import io
import math
import re
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence
from xml.sax.saxutils import XMLGenerator, escape

from loguru import logger

from tracrpc.xmlrpc.errors import ParseError, ProtocolError
from tracrpc.xmlrpc.values import INT32_MAX, INT32_MIN, RpcKind, RpcValue

DATETIME_FORMAT = "%Y%m%dT%H:%M:%S"

_INT_RE = re.compile(r"^\s*[+-]?[0-9]+\s*$")
_DOUBLE_RE = re.compile(r"^\s*[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?\s*$")
_NO_ATTRS: Dict[str, str] = {}
# Parsers fold a literal CR into LF, so CR goes out as a character reference
_TEXT_ENTITIES = {"\r": "&#13;"}


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _write_element(gen: XMLGenerator, tag: str, text: Optional[str] = None) -> None:
    gen.startElement(tag, _NO_ATTRS)
    if text:
        # ignorableWhitespace writes its argument unescaped
        gen.ignorableWhitespace(escape(text, _TEXT_ENTITIES))
    gen.endElement(tag)


def _write_value(gen: XMLGenerator, value: RpcValue) -> None:
    """Write the typed element for a value (without its <value> wrapper)."""
    kind = value.kind
    if kind is RpcKind.INTEGER:
        _write_element(gen, "i4", str(value.value))
    elif kind is RpcKind.BOOLEAN:
        _write_element(gen, "boolean", "1" if value.value else "0")
    elif kind is RpcKind.DOUBLE:
        _write_element(gen, "double", repr(value.value))
    elif kind is RpcKind.STRING:
        _write_element(gen, "string", value.value)
    elif kind is RpcKind.DATETIME:
        _write_element(gen, "dateTime.iso8601", value.value.strftime(DATETIME_FORMAT))
    elif kind is RpcKind.ARRAY:
        gen.startElement("array", _NO_ATTRS)
        gen.startElement("data", _NO_ATTRS)
        for item in value.value:
            _write_wrapped(gen, item)
        gen.endElement("data")
        gen.endElement("array")
    elif kind is RpcKind.STRUCT:
        gen.startElement("struct", _NO_ATTRS)
        for name, member in value.value.items():
            gen.startElement("member", _NO_ATTRS)
            _write_element(gen, "name", name)
            _write_wrapped(gen, member)
            gen.endElement("member")
        gen.endElement("struct")
    elif kind is RpcKind.NIL:
        _write_element(gen, "nil")
    else:
        raise ProtocolError(f"Cannot encode value of kind {kind!r}")


def _write_wrapped(gen: XMLGenerator, value: RpcValue) -> None:
    gen.startElement("value", _NO_ATTRS)
    _write_value(gen, value)
    gen.endElement("value")


def encode_value(value: RpcValue) -> str:
    """
    Encode a single value into its XML-RPC type element.

    The result is the bare type element (e.g. ``<i4>42</i4>``); the
    enclosing ``<value>`` is added by the caller context.

    Args:
        value: The value to encode.

    Returns:
        The XML fragment as text.
    """
    buffer = io.StringIO()
    gen = XMLGenerator(buffer, short_empty_elements=True)
    _write_value(gen, value)
    return buffer.getvalue()


def encode_request(method_name: str, args: Sequence[RpcValue] = ()) -> bytes:
    """
    Build a complete methodCall document.

    Args:
        method_name: Remote method name (e.g. "ticket.get").
        args: Positional arguments, written as one <param> each, in order.

    Returns:
        UTF-8 encoded request body with an XML declaration.
    """
    buffer = io.BytesIO()
    gen = XMLGenerator(buffer, encoding="utf-8", short_empty_elements=True)
    gen.startDocument()
    gen.startElement("methodCall", _NO_ATTRS)
    _write_element(gen, "methodName", method_name)
    gen.startElement("params", _NO_ATTRS)
    for arg in args:
        gen.startElement("param", _NO_ATTRS)
        _write_wrapped(gen, arg)
        gen.endElement("param")
    gen.endElement("params")
    gen.endElement("methodCall")
    gen.endDocument()
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _parse_int32(text: str) -> Optional[int]:
    """Parse a signed decimal int32, returning None when it is not one."""
    if not _INT_RE.match(text):
        return None
    number = int(text)
    if not INT32_MIN <= number <= INT32_MAX:
        return None
    return number


def _decode_int(node: ET.Element) -> RpcValue:
    text = node.text or ""
    number = _parse_int32(text)
    if number is None:
        raise ProtocolError(f"Invalid <{node.tag}> literal: {text!r}")
    return RpcValue.integer(number)


def _decode_boolean(node: ET.Element) -> RpcValue:
    return RpcValue.boolean((node.text or "") != "0")


def _decode_double(node: ET.Element) -> RpcValue:
    text = node.text or ""
    if not _DOUBLE_RE.match(text):
        raise ProtocolError(f"Invalid <double> literal: {text!r}")
    number = float(text)
    if not math.isfinite(number):
        raise ProtocolError(f"<double> literal out of range: {text!r}")
    return RpcValue.double(number)


def _decode_string(node: ET.Element) -> RpcValue:
    return RpcValue.string(node.text or "")


def _decode_datetime(node: ET.Element) -> RpcValue:
    text = (node.text or "").strip()
    # YYYYMMDDTHH:MM:SS -> YYYY-MM-DDTHH:MM:SS
    if len(text) >= 8 and text[4] != "-":
        text = f"{text[:4]}-{text[4:6]}-{text[6:]}"
    try:
        return RpcValue.datetime(datetime.fromisoformat(text))
    except ValueError as e:
        raise ProtocolError(f"Invalid <dateTime.iso8601> literal: {node.text!r}") from e


def _decode_array(node: ET.Element) -> RpcValue:
    data = node.find("data")
    if data is None:
        raise ProtocolError("<array> without <data> element")
    items = []
    for child in data:
        if child.tag != "value":
            raise ProtocolError(f"Unexpected <{child.tag}> inside <data>")
        items.append(decode_value(child))
    return RpcValue.array(items)


def _decode_struct(node: ET.Element) -> RpcValue:
    members: Dict[str, RpcValue] = {}
    for member in node:
        if member.tag != "member":
            raise ProtocolError(f"Unexpected <{member.tag}> inside <struct>")
        name = member.find("name")
        value = member.find("value")
        if name is None or value is None:
            raise ProtocolError("<member> requires both <name> and <value>")
        # Duplicate names: last one wins
        members[name.text or ""] = decode_value(value)
    return RpcValue.struct(members)


def _decode_nil(node: ET.Element) -> RpcValue:
    return RpcValue.nil()


_DECODERS: Dict[str, Callable[[ET.Element], RpcValue]] = {
    "i4": _decode_int,
    "int": _decode_int,
    "boolean": _decode_boolean,
    "double": _decode_double,
    "string": _decode_string,
    "dateTime.iso8601": _decode_datetime,
    "array": _decode_array,
    "struct": _decode_struct,
    "nil": _decode_nil,
}


def decode_value(node: ET.Element) -> RpcValue:
    """
    Decode a <value> element.

    A <value> with no type element holds untyped text. Some servers
    omit the type tag, so such text is read as an integer when it
    parses as one and as a string otherwise.

    Args:
        node: The <value> element.

    Returns:
        The decoded value.

    Raises:
        ProtocolError: On an unknown type tag or a malformed literal.
    """
    children = list(node)
    if not children:
        text = node.text or ""
        number = _parse_int32(text)
        if number is not None:
            return RpcValue.integer(number)
        logger.debug(f"Untyped XML-RPC value read as string: {text!r}")
        return RpcValue.string(text)

    if len(children) > 1:
        raise ProtocolError(
            f"<value> must contain a single type element, found {len(children)}"
        )

    child = children[0]
    decoder = _DECODERS.get(child.tag)
    if decoder is None:
        raise ProtocolError(f"Unrecognized XML-RPC type <{child.tag}>")
    return decoder(child)


def _fault_message(fault: ET.Element) -> str:
    value = fault.find("value")
    if value is None:
        return "XML-RPC fault"
    try:
        detail = decode_value(value)
        code = detail.get("faultCode")
        text = detail.get("faultString")
    except ProtocolError:
        return "XML-RPC fault"
    return f"XML-RPC fault {code or ''}: {text or ''}".strip()


def decode_response(body: bytes) -> Optional[RpcValue]:
    """
    Decode a methodResponse document.

    Args:
        body: Raw response bytes.

    Returns:
        The value of the first <param>, or None when the response has
        no <param> at all. An explicit <nil/> decodes to RpcValue.nil(),
        never to None.

    Raises:
        ParseError: If the body is not well-formed XML.
        ProtocolError: If the response is a fault or holds an invalid value.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ParseError(f"Response is not well-formed XML: {e}") from e

    fault = root.find("fault")
    if fault is not None:
        raise ProtocolError(_fault_message(fault))

    param = next(root.iter("param"), None)
    if param is None:
        return None

    value = param.find("value")
    if value is None:
        raise ProtocolError("<param> without <value> element")
    return decode_value(value)

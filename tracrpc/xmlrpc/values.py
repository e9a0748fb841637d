"""
XML-RPC Value Model.

RpcValue is the single representation used both for outbound call
arguments and for decoded results. Each value carries an explicit
RpcKind, so consumers match on the kind instead of guessing from the
Python type of the payload.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from tracrpc.xmlrpc.errors import ProtocolError, UsageError

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# Characters XML 1.0 does not allow anywhere in a document
_XML_FORBIDDEN_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def _check_xml_text(text: str, what: str) -> None:
    match = _XML_FORBIDDEN_RE.search(text)
    if match:
        raise UsageError(
            f"{what} contains {match.group()!r} at offset {match.start()}, "
            "which XML cannot carry"
        )


class RpcKind(Enum):
    """The XML-RPC value variants."""

    INTEGER = "i4"
    BOOLEAN = "boolean"
    DOUBLE = "double"
    STRING = "string"
    DATETIME = "dateTime.iso8601"
    ARRAY = "array"
    STRUCT = "struct"
    NIL = "nil"


@dataclass(frozen=True)
class RpcValue:
    """
    A dynamically-typed XML-RPC value.

    Build instances with the named constructors rather than directly::

        RpcValue.struct({"description": RpcValue.string("text")})
        RpcValue.array([RpcValue.integer(1), RpcValue.integer(2)])

    Attributes:
        kind: Which XML-RPC variant this is.
        value: The payload. int, bool, float, str, datetime,
            tuple of RpcValue, dict of str to RpcValue, or None for NIL.
    """

    kind: RpcKind
    value: Any = None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def integer(cls, value: int) -> "RpcValue":
        if isinstance(value, bool) or not isinstance(value, int):
            raise UsageError(f"Integer value expected, got {type(value).__name__}")
        if not INT32_MIN <= value <= INT32_MAX:
            raise UsageError(f"Integer {value} does not fit in a signed 32-bit i4")
        return cls(RpcKind.INTEGER, value)

    @classmethod
    def boolean(cls, value: bool) -> "RpcValue":
        return cls(RpcKind.BOOLEAN, bool(value))

    @classmethod
    def double(cls, value: float) -> "RpcValue":
        number = float(value)
        if not math.isfinite(number):
            raise UsageError(f"Double {number!r} has no XML-RPC form")
        return cls(RpcKind.DOUBLE, number)

    @classmethod
    def string(cls, value: str) -> "RpcValue":
        if not isinstance(value, str):
            raise UsageError(f"String value expected, got {type(value).__name__}")
        _check_xml_text(value, "String")
        return cls(RpcKind.STRING, value)

    @classmethod
    def datetime(cls, value: datetime) -> "RpcValue":
        """
        Build a DateTime. The wire format has no fractional seconds and
        no UTC offset, so microseconds are dropped and aware datetimes
        are converted to naive UTC.
        """
        if not isinstance(value, datetime):
            raise UsageError(f"datetime value expected, got {type(value).__name__}")
        if value.utcoffset() is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return cls(RpcKind.DATETIME, value.replace(microsecond=0))

    @classmethod
    def array(cls, items: Iterable["RpcValue"]) -> "RpcValue":
        items = tuple(items)
        for item in items:
            if not isinstance(item, RpcValue):
                raise UsageError(
                    f"Array items must be RpcValue, got {type(item).__name__}"
                )
        return cls(RpcKind.ARRAY, items)

    @classmethod
    def struct(cls, members: Mapping[str, "RpcValue"]) -> "RpcValue":
        result: Dict[str, RpcValue] = {}
        for name, member in members.items():
            if not isinstance(name, str):
                raise UsageError(f"Struct member names must be str, got {name!r}")
            _check_xml_text(name, "Struct member name")
            if not isinstance(member, RpcValue):
                raise UsageError(
                    f"Struct member '{name}' must be RpcValue, "
                    f"got {type(member).__name__}"
                )
            result[name] = member
        return cls(RpcKind.STRUCT, result)

    @classmethod
    def nil(cls) -> "RpcValue":
        return cls(RpcKind.NIL, None)

    @classmethod
    def from_python(cls, obj: Any) -> "RpcValue":
        """
        Wrap a native Python value.

        Args:
            obj: None, bool, int, float, str, datetime, a list/tuple of
                convertible values, a mapping with str keys, or an RpcValue
                (returned unchanged).

        Returns:
            The equivalent RpcValue.

        Raises:
            UsageError: If the value (or a nested value) has no XML-RPC form.
        """
        if isinstance(obj, RpcValue):
            return obj
        if obj is None:
            return cls.nil()
        # bool is a subclass of int, check it first
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, int):
            return cls.integer(obj)
        if isinstance(obj, float):
            return cls.double(obj)
        if isinstance(obj, str):
            return cls.string(obj)
        if isinstance(obj, datetime):
            return cls.datetime(obj)
        if isinstance(obj, Mapping):
            return cls.struct({k: cls.from_python(v) for k, v in obj.items()})
        if isinstance(obj, (list, tuple)):
            return cls.array(cls.from_python(item) for item in obj)
        raise UsageError(f"Cannot convert {type(obj).__name__} to an XML-RPC value")

    def __hash__(self) -> int:
        # Struct members live in a dict; hash them as a set of pairs
        if self.kind is RpcKind.STRUCT:
            return hash((self.kind, frozenset(self.value.items())))
        return hash((self.kind, self.value))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_nil(self) -> bool:
        return self.kind is RpcKind.NIL

    def _expect(self, kind: RpcKind) -> Any:
        if self.kind is not kind:
            raise ProtocolError(
                f"Expected {kind.name.lower()} value, got {self.kind.name.lower()}"
            )
        return self.value

    def as_int(self) -> int:
        return self._expect(RpcKind.INTEGER)

    def as_bool(self) -> bool:
        return self._expect(RpcKind.BOOLEAN)

    def as_float(self) -> float:
        return self._expect(RpcKind.DOUBLE)

    def as_str(self) -> str:
        return self._expect(RpcKind.STRING)

    def as_datetime(self) -> datetime:
        return self._expect(RpcKind.DATETIME)

    def as_list(self) -> Tuple["RpcValue", ...]:
        return self._expect(RpcKind.ARRAY)

    def as_dict(self) -> Dict[str, "RpcValue"]:
        return self._expect(RpcKind.STRUCT)

    def get(self, name: str, default: Optional["RpcValue"] = None) -> Optional["RpcValue"]:
        """Look up a struct member, returning default when it is missing."""
        return self.as_dict().get(name, default)

    def to_python(self) -> Any:
        """Recursively unwrap into plain Python values (lists and dicts)."""
        if self.kind is RpcKind.ARRAY:
            return [item.to_python() for item in self.value]
        if self.kind is RpcKind.STRUCT:
            return {name: member.to_python() for name, member in self.value.items()}
        return self.value

    def __str__(self) -> str:
        """Text form used when a value is shown to a user."""
        if self.kind is RpcKind.NIL:
            return ""
        if self.kind is RpcKind.BOOLEAN:
            return "1" if self.value else "0"
        if self.kind in (RpcKind.ARRAY, RpcKind.STRUCT):
            return repr(self.to_python())
        return str(self.value)


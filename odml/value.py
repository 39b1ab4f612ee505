"""
Value record: the atomic typed datum of an odML Property.

Every Value carries its content together with descriptive metadata:

    unit         — physical unit of the content
    uncertainty  — measurement uncertainty (any scalar)
    type         — ValueType tag, fixed when the Value is created
    reference    — external reference id
    definition   — free text describing this particular value
    filename     — default file name (binary values only)
    checksum     — derived from binary payloads, read-only
    encoder      — encoding used for binary payloads, read-only

The type tag is decided once: either declared by the caller or inferred
from the Python type of the content. Content is coerced to the tag's
Python type on construction, so later accessors never have to guess.

Two Values are equal when their contents are equal; every side field is
ignored for equality.
"""

from __future__ import annotations

import math
import weakref
import zlib
from datetime import date, datetime, time
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import structlog

from .errors import ValueConversionError

if TYPE_CHECKING:
    from .property import Property
    from .validation import ValidationIssue


logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

BINARY_ENCODER = "base64"
CHECKSUM_ALGORITHM = "crc32"

TRUE_LITERALS = frozenset({"true", "1", "yes"})
FALSE_LITERALS = frozenset({"false", "0", "no"})


# =============================================================================
# VALUE TYPES
# =============================================================================

class ValueType(Enum):
    """
    The closed set of odML value types.

    Textual tags (text, string, person, url) hold ``str`` content;
    the remaining tags hold the matching Python scalar.
    """
    TEXT = "text"
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    BINARY = "binary"
    PERSON = "person"
    URL = "url"

    @classmethod
    def from_tag(cls, tag: str | ValueType) -> ValueType:
        """Look up a type by its tag, ignoring case and surrounding blanks."""
        if isinstance(tag, ValueType):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            raise ValueConversionError(tag, "type tag", "unknown odML type")

    @classmethod
    def infer(cls, content: Any) -> Optional[ValueType]:
        """
        Infer the type tag from the Python type of the content.

        Returns None for empty content, which leaves the type undeclared.
        """
        if content is None:
            return None
        if isinstance(content, bool):
            return cls.BOOLEAN
        if isinstance(content, int):
            return cls.INT
        if isinstance(content, float):
            return cls.FLOAT
        # datetime is a subclass of date, test it first
        if isinstance(content, datetime):
            return cls.DATETIME
        if isinstance(content, date):
            return cls.DATE
        if isinstance(content, time):
            return cls.TIME
        if isinstance(content, (bytes, bytearray)):
            return cls.BINARY
        if isinstance(content, str) and not content.strip():
            return None
        return cls.TEXT

    @property
    def is_textual(self) -> bool:
        return self in (ValueType.TEXT, ValueType.STRING, ValueType.PERSON, ValueType.URL)

    def coerce(self, raw: Any) -> Any:
        """
        Convert raw content into this type's Python representation.

        Raises:
            ValueConversionError: If the content cannot be interpreted
        """
        if self.is_textual:
            return raw if isinstance(raw, str) else str(raw)

        if self is ValueType.BINARY:
            if isinstance(raw, bytearray):
                return bytes(raw)
            if isinstance(raw, (bytes, str)):
                return raw
            raise ValueConversionError(raw, self.value)

        if self is ValueType.INT:
            return _coerce_int(raw)
        if self is ValueType.FLOAT:
            return _coerce_float(raw)
        if self is ValueType.BOOLEAN:
            return _coerce_bool(raw)
        if self is ValueType.DATETIME:
            return _coerce_iso(raw, datetime, self.value)
        if self is ValueType.DATE:
            if isinstance(raw, datetime):
                return raw.date()
            return _coerce_iso(raw, date, self.value)
        if self is ValueType.TIME:
            if isinstance(raw, datetime):
                return raw.time()
            return _coerce_iso(raw, time, self.value)

        raise ValueConversionError(raw, self.value)


def _coerce_int(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueConversionError(raw, "int", "booleans are not integers")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if raw.is_integer():
            return int(raw)
        raise ValueConversionError(raw, "int", "fractional part would be lost")
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            raise ValueConversionError(raw, "int")
    raise ValueConversionError(raw, "int")


def _coerce_float(raw: Any) -> float:
    if isinstance(raw, bool):
        raise ValueConversionError(raw, "float", "booleans are not numbers")
    if isinstance(raw, (int, float)):
        try:
            return float(raw)
        except OverflowError:
            raise ValueConversionError(raw, "float", "out of float range")
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except (ValueError, OverflowError):
            raise ValueConversionError(raw, "float")
    raise ValueConversionError(raw, "float")


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in TRUE_LITERALS:
        return True
    if text in FALSE_LITERALS:
        return False
    raise ValueConversionError(raw, "boolean")


def _coerce_iso(raw: Any, target: type, tag: str) -> Any:
    if isinstance(raw, target):
        return raw
    if isinstance(raw, str):
        try:
            return target.fromisoformat(raw.strip())
        except ValueError:
            raise ValueConversionError(raw, tag, "expected ISO 8601 format")
    raise ValueConversionError(raw, tag)


def _is_blank(content: Any) -> bool:
    return content is None or (isinstance(content, str) and not content.strip())


def is_set(field_value: Any) -> bool:
    """True when a side field holds something other than None or blank text."""
    if field_value is None:
        return False
    if isinstance(field_value, str):
        return bool(field_value.strip())
    return True


# =============================================================================
# VALUE RECORD
# =============================================================================

class Value:
    """
    A single typed datum with unit, uncertainty and provenance metadata.

    A Value is owned by exactly one Property. The back-reference to that
    Property is a weak link; ownership flows Property -> Value only.
    """

    def __init__(
        self,
        content: Any,
        unit: Optional[str] = None,
        uncertainty: Any = None,
        type: str | ValueType | None = None,
        filename: Optional[str] = None,
        definition: Optional[str] = None,
        reference: Optional[str] = None,
    ):
        if type is None or (isinstance(type, str) and not type.strip()):
            value_type = ValueType.infer(content)
        else:
            value_type = ValueType.from_tag(type)

        if value_type is not None and not _is_blank(content):
            content = value_type.coerce(content)

        self._content = content
        self._type = value_type
        self.unit = unit
        self.uncertainty = uncertainty
        self.definition = definition
        self.reference = reference
        self.filename = filename
        self._property_ref: Optional[weakref.ref] = None

    # -------------------------------------------------------------------------
    # Content and type
    # -------------------------------------------------------------------------

    @property
    def content(self) -> Any:
        return self._content

    @content.setter
    def content(self, raw: Any) -> None:
        """
        Replace the content, coercing it to the established type.

        Raises:
            ValueConversionError: If the content does not fit the type
        """
        if self._type is None:
            self._type = ValueType.infer(raw)
        if self._type is not None and not _is_blank(raw):
            raw = self._type.coerce(raw)
        self._content = raw

    @property
    def type(self) -> Optional[ValueType]:
        return self._type

    @type.setter
    def type(self, tag: str | ValueType | None) -> None:
        """
        Change the type tag and re-coerce the content.

        A conversion failure is logged and leaves the Value unchanged.
        """
        if tag is None or (isinstance(tag, str) and not tag.strip()):
            self._type = None
            return
        try:
            new_type = ValueType.from_tag(tag)
            content = self._content
            if not _is_blank(content):
                content = new_type.coerce(content)
        except ValueConversionError as e:
            logger.warning(
                "Value type not changed",
                content=self._content,
                requested_type=str(tag),
                reason=str(e),
            )
            return
        self._type = new_type
        self._content = content

    @property
    def type_tag(self) -> str:
        """The type as plain text, empty when undeclared."""
        return self._type.value if self._type is not None else ""

    # -------------------------------------------------------------------------
    # Binary metadata (read-only)
    # -------------------------------------------------------------------------

    @property
    def checksum(self) -> Optional[str]:
        """CRC32 checksum of a binary payload, None for other types."""
        if self._type is not ValueType.BINARY or self._content is None:
            return None
        payload = self._content
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return f"{CHECKSUM_ALGORITHM}${zlib.crc32(payload) & 0xFFFFFFFF:08x}"

    @property
    def encoder(self) -> str:
        return BINARY_ENCODER if self._type is ValueType.BINARY else ""

    # -------------------------------------------------------------------------
    # Owning property (weak link)
    # -------------------------------------------------------------------------

    @property
    def associated_property(self) -> Optional[Property]:
        if self._property_ref is None:
            return None
        return self._property_ref()

    def set_associated_property(self, prop: Optional[Property]) -> None:
        self._property_ref = weakref.ref(prop) if prop is not None else None

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def as_number(self) -> float:
        """Content as float, NaN if it cannot be read as a number."""
        try:
            return ValueType.FLOAT.coerce(self._content)
        except ValueConversionError as e:
            logger.error("Value cannot be converted to float", reason=str(e))
            return math.nan

    def as_text(self) -> str:
        if self._content is None:
            return ""
        if isinstance(self._content, (date, time)):
            return self._content.isoformat()
        return str(self._content)

    def as_date(self) -> Optional[date]:
        """Date component of the content, None if there is none."""
        try:
            return ValueType.DATE.coerce(self._content)
        except ValueConversionError as e:
            logger.error("Value cannot be converted to a date", reason=str(e))
            return None

    def as_time(self) -> Optional[time]:
        """Time component of the content, None if there is none."""
        try:
            return ValueType.TIME.coerce(self._content)
        except ValueConversionError as e:
            logger.error("Value cannot be converted to a time", reason=str(e))
            return None

    # -------------------------------------------------------------------------
    # Misc
    # -------------------------------------------------------------------------

    def is_empty(self) -> bool:
        if self._content is None:
            return True
        if isinstance(self._content, (str, bytes)):
            return len(self._content.strip()) == 0
        return False

    def copy(self) -> Value:
        """Detached copy; the owning property is not carried over."""
        duplicate = Value.__new__(Value)
        duplicate._content = self._content
        duplicate._type = self._type
        duplicate.unit = self.unit
        duplicate.uncertainty = self.uncertainty
        duplicate.definition = self.definition
        duplicate.reference = self.reference
        duplicate.filename = self.filename
        duplicate._property_ref = None
        return duplicate

    def validate(self, reference_property: Property) -> list[ValidationIssue]:
        """Check this value against a terminology property."""
        from .validation import validate_value
        return validate_value(self, reference_property)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Value):
            return self._content == other._content
        return NotImplemented

    def __repr__(self) -> str:
        return f"Value({self._content!r}, type={self.type_tag!r}, unit={self.unit!r})"

    def __str__(self) -> str:
        return self.as_text()

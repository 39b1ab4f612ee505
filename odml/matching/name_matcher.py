"""
Identity Matcher for odML values.

Scores how well two typed scalars describe the same thing.

Design principles:
- Scalars (text, numbers, dates, times) either match exactly or not
- Person names get a graded heuristic, because the same person is
  written "Smith, John", "J. Smith" or "John Smith"
- Every input that cannot be interpreted scores ERROR; nothing raises

Match levels are ordered by strength and only comparable with each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Any, Optional

import structlog

from ..errors import ValueConversionError
from ..value import Value, ValueType


logger = structlog.get_logger(__name__)


# =============================================================================
# MATCH LEVELS
# =============================================================================

@total_ordering
class MatchLevel(Enum):
    """
    Strength of a match, weakest first.

    EXACT is the top level as reported for scalar types; it is the same
    member as FIRST_LAST.
    """
    ERROR = -1
    NO_MATCH = 0
    FIRST_CONFLICT_LAST_MATCH = 5
    INITIALS_ONLY = 10
    FIRST_OR_LAST_ONLY = 20
    FIRST_INITIAL_LAST = 30
    FIRST_LAST = 50
    EXACT = 50

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, MatchLevel):
            return NotImplemented
        return self.value < other.value

    @property
    def is_match(self) -> bool:
        return self.value > MatchLevel.NO_MATCH.value


# =============================================================================
# PERSON NAMES
# =============================================================================

@dataclass(frozen=True)
class PersonName:
    """A name split into first and last component; first may be empty."""
    first: str
    last: str

    @property
    def has_first(self) -> bool:
        return bool(self.first)


def _clean(component: str) -> str:
    return component.strip().strip(".").strip()


def get_last_name(full_name: str) -> str:
    """
    Extract the last name.

    "Smith, John" -> "Smith"
    "John Smith"  -> "Smith"
    "J.Smith"     -> "Smith"
    "Smith"       -> "Smith"
    """
    full_name = full_name.strip()
    if "," in full_name:
        return _clean(full_name[:full_name.index(",")])
    if " " in full_name:
        return _clean(full_name[full_name.rindex(" ") + 1:])
    if "." in full_name.rstrip("."):
        return _clean(full_name[full_name.rstrip(".").rindex(".") + 1:])
    return _clean(full_name)


def get_first_name(full_name: str) -> str:
    """
    Extract the first name, or its initial, without trailing dot.

    Only the first of several first names is kept. A single word has no
    first name and yields "".

    "Smith, John A." -> "John"
    "J. Smith"       -> "J"
    "J.Smith"        -> "J"
    "John Smith"     -> "John"
    "Smith"          -> ""
    """
    full_name = full_name.strip()
    if "," in full_name:
        first = full_name[full_name.index(",") + 1:].strip()
    elif " " in full_name:
        first = full_name[:full_name.rindex(" ")].strip()
    elif "." in full_name.rstrip("."):
        first = full_name[:full_name.index(".")]
    else:
        return ""

    if " " in first:
        first = first[:first.index(" ")]
    if "." in first:
        first = first[:first.index(".")]
    return first.strip()


def split_name(full_name: str) -> PersonName:
    return PersonName(first=get_first_name(full_name), last=get_last_name(full_name))


def _prefix(a: str, b: str) -> bool:
    """True when ``b`` starts with ``a``."""
    return b.startswith(a)


def name_match(name1: Optional[str], name2: Optional[str]) -> MatchLevel:
    """
    Score two person names.

    Precedence, case-insensitive:
        1. first and last equal                      -> FIRST_LAST
        2. last equal, one first a prefix of other   -> FIRST_INITIAL_LAST
        3. first and last prefix each other          -> INITIALS_ONLY
        4. last equal, first names unrelated         -> FIRST_CONFLICT_LAST_MATCH
        5. a side without first name whose single
           token equals the other's last or first    -> FIRST_OR_LAST_ONLY
        6. anything else                             -> NO_MATCH

    None or blank input scores ERROR.
    """
    if name1 is None or name2 is None:
        logger.debug("Name match error, a name is None")
        return MatchLevel.ERROR
    if not name1.strip() or not name2.strip():
        logger.debug("Name match error, a name is empty")
        return MatchLevel.ERROR

    one = split_name(name1.lower())
    two = split_name(name2.lower())

    if one.has_first and two.has_first:
        if one.first == two.first and one.last == two.last:
            return MatchLevel.FIRST_LAST
        if one.last == two.last and (_prefix(one.first, two.first) or _prefix(two.first, one.first)):
            return MatchLevel.FIRST_INITIAL_LAST
        if (_prefix(two.first, one.first) and _prefix(two.last, one.last)) or (
            _prefix(one.first, two.first) and _prefix(one.last, two.last)
        ):
            return MatchLevel.INITIALS_ONLY
        if one.last == two.last:
            return MatchLevel.FIRST_CONFLICT_LAST_MATCH
        return MatchLevel.NO_MATCH

    if not one.has_first and not two.has_first:
        return MatchLevel.FIRST_OR_LAST_ONLY if one.last == two.last else MatchLevel.NO_MATCH

    single, full = (one, two) if not one.has_first else (two, one)
    if single.last in (full.last, full.first):
        return MatchLevel.FIRST_OR_LAST_ONLY
    return MatchLevel.NO_MATCH


# =============================================================================
# TYPED MATCH
# =============================================================================

def _unwrap(candidate: Any) -> Any:
    return candidate.content if isinstance(candidate, Value) else candidate


def match(an_object: Any, another_object: Any, type: str | ValueType | None) -> MatchLevel:
    """
    Score two objects of the given odML type.

    Value records are compared by their content. Scalars are converted to
    the type first and then compared for equality (textual types ignore
    case). Unknown types, failed conversions and missing input score
    ERROR.
    """
    an_object = _unwrap(an_object)
    another_object = _unwrap(another_object)
    if an_object is None or another_object is None or type is None:
        logger.debug("Match error, object or type is None")
        return MatchLevel.ERROR

    try:
        value_type = ValueType.from_tag(type)
    except ValueConversionError:
        logger.debug("Match error, unknown type", type=str(type))
        return MatchLevel.ERROR

    if value_type is ValueType.PERSON:
        return name_match(str(an_object), str(another_object))
    if value_type is ValueType.BINARY:
        logger.debug("Match error, binary values are not matched")
        return MatchLevel.ERROR

    try:
        first = value_type.coerce(an_object)
        second = value_type.coerce(another_object)
    except ValueConversionError as e:
        logger.error("Match error, conversion failed", type=value_type.value, reason=str(e))
        return MatchLevel.ERROR

    if value_type.is_textual:
        return MatchLevel.EXACT if first.lower() == second.lower() else MatchLevel.NO_MATCH
    return MatchLevel.EXACT if first == second else MatchLevel.NO_MATCH

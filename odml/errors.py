"""
Failure taxonomy for the odML property core.

Two failure styles are kept strictly apart:

    Construction  — invariant violations while building a Property are
                    fatal and raise PropertyConstructionError.
    Operation     — every later violation (bad index, duplicate value,
                    merge precondition mismatch, ...) is logged and
                    reported through the return value. Nothing is raised
                    and the object graph is left untouched.

Conversion of content into a requested scalar type raises
ValueConversionError internally; public accessors translate it into a
NaN / None sentinel.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


# =============================================================================
# CONSTRUCTION FAILURES
# =============================================================================

class ConstructionRule(Enum):
    """Invariants enforced when a Property is created."""
    EMPTY_NAME = "empty_name"
    PATH_LIKE_NAME = "path_like_name"
    INCONSISTENT_VALUES = "inconsistent_values"
    INVALID_VALUE = "invalid_value"


class PropertyConstructionError(ValueError):
    """Raised when a Property cannot be created."""

    def __init__(self, rule: ConstructionRule, reason: str, name: Optional[str] = None):
        self.rule = rule
        self.reason = reason
        self.name = name
        super().__init__(f"[{rule.value}] {reason}")


# =============================================================================
# OPERATION FAILURES
# =============================================================================

class OperationFailure(Enum):
    """
    Reasons a mutator or merge can refuse to act.

    These are reported, never raised.
    """
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    NULL_VALUE = "null_value"
    DUPLICATE_VALUE = "duplicate_value"
    MISSING_VALUE = "missing_value"
    AMBIGUOUS_INDEX = "ambiguous_index"
    NOT_BINARY = "not_binary"
    INVALID_CONTENT = "invalid_content"
    INVALID_MAPPING = "invalid_mapping"

    # Merge preconditions
    NAME_MISMATCH = "name_mismatch"
    TYPE_MISMATCH = "type_mismatch"
    MAPPING_MISMATCH = "mapping_mismatch"
    DEFINITION_MISMATCH = "definition_mismatch"
    UNIT_MISMATCH = "unit_mismatch"


# =============================================================================
# CONVERSION FAILURES
# =============================================================================

class ValueConversionError(ValueError):
    """Raised when content cannot be interpreted as the requested type."""

    def __init__(self, content: object, type_tag: str, reason: Optional[str] = None):
        self.content = content
        self.type_tag = type_tag
        message = f"cannot interpret {content!r} as {type_tag}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

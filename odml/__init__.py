# odML Property Core
# Values, properties, merge, validation and identity matching

"""
Core invariant: a Property owns an ordered sequence of same-typed Values,
unique by content. Construction failures raise; every later operational
failure is logged and reported through the return value.
"""

from .errors import (
    ConstructionRule,
    OperationFailure,
    PropertyConstructionError,
    ValueConversionError,
)
from .value import Value, ValueType
from .property import Property, check_name_style
from .merge.merger import MergePolicy, MergeResult
from .validation import IssueKind, ValidationIssue, ValidationReport
from .matching.name_matcher import MatchLevel, match

__version__ = "0.1.0"

__all__ = [
    "ConstructionRule",
    "IssueKind",
    "MatchLevel",
    "MergePolicy",
    "MergeResult",
    "OperationFailure",
    "Property",
    "PropertyConstructionError",
    "ValidationIssue",
    "ValidationReport",
    "Value",
    "ValueConversionError",
    "ValueType",
    "check_name_style",
    "match",
]

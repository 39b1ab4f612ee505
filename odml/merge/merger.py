"""
Merge Engine for odML properties.

Combines two properties describing the same concept under a selectable
conflict policy.

Precondition gate:
    The merge is refused as a whole (nothing is changed on either side)
    when any declared attribute conflicts: name, type, mapping,
    definition or first-value unit. Attributes declared by only one side
    never conflict.

Scalar fields:
    definition, type, unit, mapping, dependency and dependency_value are
    filled in when missing on this side. Dependency and dependency value
    are additionally taken from the other side under OTHER_OVERRIDES_THIS.

Values:
    Values are matched by content. Matched pairs have their side fields
    (definition, uncertainty, filename, reference) reconciled according
    to the policy; unmatched values of the other side are appended
    (COMBINE), replace the single value of this side
    (OTHER_OVERRIDES_THIS), or are dropped (THIS_OVERRIDES_OTHER).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

import structlog

from ..errors import OperationFailure
from ..value import Value, ValueType, is_set

if TYPE_CHECKING:
    from ..property import Property


logger = structlog.get_logger(__name__)


# =============================================================================
# MERGE POLICY
# =============================================================================

class MergePolicy(Enum):
    """Conflict resolution applied while merging."""
    THIS_OVERRIDES_OTHER = "this_overrides_other"
    OTHER_OVERRIDES_THIS = "other_overrides_this"
    COMBINE = "combine"


DEFAULT_MERGE_POLICY = MergePolicy.COMBINE

# Joins value definitions when COMBINE meets two non-empty definitions
DEFINITION_SEPARATOR = "\n"

# Value side fields reconciled for content-matched pairs
RECONCILED_FIELDS = ("definition", "uncertainty", "filename", "reference")


@dataclass
class MergeResult:
    """Outcome of a merge call."""
    merged: bool
    policy: MergePolicy
    failure: Optional[OperationFailure] = None
    reason: Optional[str] = None
    values_added: int = 0
    values_replaced: int = 0
    values_reconciled: int = 0

    @classmethod
    def refused(cls, policy: MergePolicy, failure: OperationFailure, reason: str) -> MergeResult:
        return cls(merged=False, policy=policy, failure=failure, reason=reason)


# =============================================================================
# PRECONDITIONS
# =============================================================================

def _differs(this: Optional[str], other: Optional[str]) -> bool:
    """True when both sides declare a value and they differ ignoring case."""
    if not is_set(this) or not is_set(other):
        return False
    return this.lower() != other.lower()


def _type_tag(value_type: Optional[ValueType]) -> Optional[str]:
    return value_type.value if value_type is not None else None


def check_merge_preconditions(
    this: Property,
    other: Property,
) -> Optional[tuple[OperationFailure, str]]:
    """
    Check whether two properties may be merged.

    Returns:
        None if the merge may proceed, otherwise the failure and a
        human-readable reason
    """
    if this.name.lower() != other.name.lower():
        return (
            OperationFailure.NAME_MISMATCH,
            f"cannot merge properties of different names: {this.name!r} vs {other.name!r}",
        )
    if _differs(_type_tag(this.type), _type_tag(other.type)):
        return (
            OperationFailure.TYPE_MISMATCH,
            f"cannot merge properties with different types: "
            f"{this.type.value!r} vs {other.type.value!r}",
        )
    if this.mapping is not None and other.mapping is not None and not this.same_mapping(other.mapping):
        return (
            OperationFailure.MAPPING_MISMATCH,
            f"cannot merge properties mapping to different entries: "
            f"{this.mapping!r} vs {other.mapping!r}",
        )
    if _differs(this.definition, other.definition):
        return (
            OperationFailure.DEFINITION_MISMATCH,
            "cannot merge properties having different definitions",
        )
    if _differs(this.get_unit(0), other.get_unit(0)):
        return (
            OperationFailure.UNIT_MISMATCH,
            f"cannot merge properties having different units: "
            f"{this.get_unit(0)!r} vs {other.get_unit(0)!r}",
        )
    return None


# =============================================================================
# VALUE RECONCILIATION
# =============================================================================

def reconcile_value(this_value: Value, other_value: Value, policy: MergePolicy) -> None:
    """
    Reconcile the side fields of two values holding the same content.

    THIS_OVERRIDES_OTHER  keep this field if set, else take the other's
    OTHER_OVERRIDES_THIS  take the other's field whenever it is set
    COMBINE               as THIS_OVERRIDES_OTHER, but two set
                          definitions are joined with a newline

    The filename is only reconciled when this value is binary; other
    types never carry one.
    """
    for field_name in RECONCILED_FIELDS:
        # filename is only meaningful on binary values
        if field_name == "filename" and this_value.type is not ValueType.BINARY:
            continue

        mine = getattr(this_value, field_name)
        theirs = getattr(other_value, field_name)

        if not is_set(mine):
            if is_set(theirs):
                setattr(this_value, field_name, theirs)
            continue
        if not is_set(theirs):
            continue

        if policy is MergePolicy.OTHER_OVERRIDES_THIS:
            setattr(this_value, field_name, theirs)
        elif policy is MergePolicy.COMBINE and field_name == "definition":
            setattr(this_value, field_name, f"{mine}{DEFINITION_SEPARATOR}{theirs}")


def _find_content(this: Property, content: object) -> int:
    for i, value in enumerate(this):
        if value.content == content:
            return i
    return -1


# =============================================================================
# MERGE
# =============================================================================

def _merge_scalar_fields(this: Property, other: Property, policy: MergePolicy) -> None:
    if not is_set(this.definition) and is_set(other.definition):
        this.definition = other.definition
    if this.type is None and other.type is not None:
        this.set_type(other.type)
    if this.get_unit(0) is None and other.get_unit(0) is not None:
        this.set_unit(other.get_unit(0))
    if this.mapping is None and other.mapping is not None:
        this.set_mapping(other.mapping)

    overrides = policy is MergePolicy.OTHER_OVERRIDES_THIS
    if not is_set(this.dependency):
        this.dependency = other.dependency
    elif overrides and is_set(other.dependency):
        this.dependency = other.dependency

    if not is_set(this.dependency_value):
        this.dependency_value = other.dependency_value
    elif overrides and is_set(other.dependency_value):
        this.dependency_value = other.dependency_value


def merge_properties(
    this: Property,
    other: Property,
    policy: MergePolicy = DEFAULT_MERGE_POLICY,
) -> MergeResult:
    """
    Merge ``other`` into ``this`` under ``policy``.

    ``other`` is never modified. If a precondition fails, ``this`` is left
    untouched as well and the result carries the failure.
    """
    conflict = check_merge_preconditions(this, other)
    if conflict is not None:
        failure, reason = conflict
        logger.error(
            "Merge refused",
            property=this.name,
            reason=failure.value,
            detail=reason,
        )
        return MergeResult.refused(policy, failure, reason)

    _merge_scalar_fields(this, other, policy)
    result = MergeResult(merged=True, policy=policy)

    for other_value in list(other):
        index = _find_content(this, other_value.content)
        if index >= 0:
            reconcile_value(this.get_whole_value(index), other_value, policy)
            result.values_reconciled += 1
            continue

        if policy is MergePolicy.COMBINE:
            added = this.add_value(
                other_value.content,
                reference=other_value.reference,
                unit=this.get_unit(0) or other_value.unit,
                uncertainty=other_value.uncertainty,
                type=other_value.type,
                filename=other_value.filename,
                definition=other_value.definition,
            )
            if added:
                result.values_added += 1
        elif policy is MergePolicy.OTHER_OVERRIDES_THIS and this.value_count() == 1:
            if this.set_value_at(other_value.content, 0):
                reconcile_value(this.get_whole_value(0), other_value, policy)
                result.values_replaced += 1

    logger.debug(
        "Properties merged",
        property=this.name,
        policy=policy.value,
        added=result.values_added,
        replaced=result.values_replaced,
        reconciled=result.values_reconciled,
    )
    return result

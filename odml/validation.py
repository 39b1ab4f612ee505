"""
Validation of odML properties against terminology definitions.

A terminology supplies normative Property definitions. Validating a
property against its terminology counterpart reports discrepancies:

1. A definition differing from the terminology's (the property keeps
   its own definition)
2. A declared dependency whose sibling property is missing
3. A declared dependency value not held by that sibling
4. Values whose type or unit differ from the terminology's

Validation only reports. It never modifies the validated property and
never stops at the first discrepancy; every issue is logged as a warning
and collected in the returned report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import structlog

if TYPE_CHECKING:
    from .property import Property
    from .value import Value


logger = structlog.get_logger(__name__)


# =============================================================================
# ISSUES
# =============================================================================

class IssueKind(Enum):
    """Kinds of discrepancies found during validation."""
    DEFINITION_MISMATCH = "definition_mismatch"
    MISSING_CONTAINER = "missing_container"
    MISSING_DEPENDENCY = "missing_dependency"
    DEPENDENCY_VALUE_MISMATCH = "dependency_value_mismatch"
    VALUE_TYPE_MISMATCH = "value_type_mismatch"
    VALUE_UNIT_MISMATCH = "value_unit_mismatch"


@dataclass(frozen=True)
class ValidationIssue:
    """A single non-fatal discrepancy."""
    kind: IssueKind
    property_name: str
    message: str
    path: Optional[str] = None
    value_index: Optional[int] = None


@dataclass
class ValidationReport:
    """All discrepancies found for one property."""
    property_name: str
    reference_name: str
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def kinds(self) -> list[IssueKind]:
        return [issue.kind for issue in self.issues]


def _issue(
    kind: IssueKind,
    property_name: str,
    message: str,
    path: Optional[str] = None,
    value_index: Optional[int] = None,
    **context: Any,
) -> ValidationIssue:
    logger.warning(
        message,
        property=property_name,
        kind=kind.value,
        path=path,
        value_index=value_index,
        **context,
    )
    return ValidationIssue(
        kind=kind,
        property_name=property_name,
        message=message,
        path=path,
        value_index=value_index,
    )


def _property_path(prop: Property) -> Optional[str]:
    parent = prop.parent
    if parent is None:
        return None
    return f"{parent.get_path()}#{prop.name}"


# =============================================================================
# PROPERTY-LEVEL CHECKS
# =============================================================================

def validate_definition(prop: Property, reference: Property) -> Optional[ValidationIssue]:
    """
    Compare definitions, ignoring case.

    Only a property that declares a definition can disagree; an empty
    definition is never reported.
    """
    if not prop.definition:
        return None
    if prop.definition.lower() == (reference.definition or "").lower():
        return None
    return _issue(
        IssueKind.DEFINITION_MISMATCH,
        prop.name,
        "Definition differs from terminology, kept original definition",
        path=_property_path(prop),
    )


def validate_dependency(prop: Property, reference: Property) -> Optional[ValidationIssue]:
    """
    Resolve the terminology's dependency against the property's container.

    - No dependency declared: nothing to check.
    - No container: the sibling cannot be resolved, reported.
    - Sibling missing: reported.
    - Dependency value declared: at least one sibling value must equal it,
      ignoring case.
    """
    dependency = reference.dependency
    if not dependency:
        return None

    path = _property_path(prop)
    parent = prop.parent
    if parent is None:
        return _issue(
            IssueKind.MISSING_CONTAINER,
            prop.name,
            "Terminology requests a sibling property but the property has no container",
            dependency=dependency,
        )

    sibling = parent.get_property(dependency) if parent.contains_property(dependency) else None
    if sibling is None:
        return _issue(
            IssueKind.MISSING_DEPENDENCY,
            prop.name,
            "Terminology requests a sibling property which was not found",
            path=path,
            dependency=dependency,
        )

    expected = reference.dependency_value
    if not expected:
        return None
    for value in sibling:
        if value.as_text().lower() == expected.lower():
            return None
    return _issue(
        IssueKind.DEPENDENCY_VALUE_MISMATCH,
        prop.name,
        "Terminology requests a sibling property holding a value that was not found",
        path=path,
        dependency=dependency,
        dependency_value=expected,
    )


# =============================================================================
# VALUE-LEVEL CHECKS
# =============================================================================

def validate_value(
    value: Value,
    reference: Property,
    value_index: Optional[int] = None,
) -> list[ValidationIssue]:
    """Check one value's type and unit against the terminology property."""
    issues: list[ValidationIssue] = []
    owner = value.associated_property
    property_name = owner.name if owner is not None else reference.name
    path = _property_path(owner) if owner is not None else None

    expected_type = reference.type
    if expected_type is not None and value.type is not None and value.type is not expected_type:
        issues.append(_issue(
            IssueKind.VALUE_TYPE_MISMATCH,
            property_name,
            "Value type differs from terminology",
            path=path,
            value_index=value_index,
            value_type=value.type_tag,
            expected_type=expected_type.value,
        ))

    expected_unit = reference.get_unit(0)
    if expected_unit and value.unit and value.unit.lower() != expected_unit.lower():
        issues.append(_issue(
            IssueKind.VALUE_UNIT_MISMATCH,
            property_name,
            "Value unit differs from terminology",
            path=path,
            value_index=value_index,
            unit=value.unit,
            expected_unit=expected_unit,
        ))
    return issues


# =============================================================================
# FULL VALIDATION
# =============================================================================

def validate_property(prop: Property, reference: Property) -> ValidationReport:
    """
    Validate a property against its terminology counterpart.

    Runs every check regardless of earlier findings.
    """
    report = ValidationReport(property_name=prop.name, reference_name=reference.name)

    for check in (validate_definition, validate_dependency):
        issue = check(prop, reference)
        if issue is not None:
            report.issues.append(issue)

    for index, value in enumerate(prop):
        report.issues.extend(validate_value(value, reference, index))

    return report

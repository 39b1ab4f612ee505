"""
Property: the building block of an odML document that actually stores
information.

A Property has a mandatory name and an ordered sequence of Value records
that share one type. Optional descriptive metadata:

    definition        — what the property means
    dependency        — name of a sibling property this one depends on
    dependency_value  — value that sibling must hold
    mapping           — URL of the terminology entry this property maps to

Failure model:
    - Construction with an empty or path-like name raises
      PropertyConstructionError.
    - Every later operation reports failure through its return value
      (False / None / NaN / -1), logs the reason, and leaves the Property
      unchanged.
"""

from __future__ import annotations

import math
import re
import weakref
from datetime import date, time
from typing import TYPE_CHECKING, Any, Iterator, Optional
from urllib.parse import urldefrag, urlparse

import structlog

from .errors import (
    ConstructionRule,
    OperationFailure,
    PropertyConstructionError,
    ValueConversionError,
)
from .merge.merger import DEFAULT_MERGE_POLICY, MergePolicy, MergeResult, merge_properties
from .validation import ValidationReport, validate_property
from .value import Value, ValueType, is_set

if TYPE_CHECKING:
    from .container import Container


logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# A well-styled name starts with an ASCII letter
NAME_PATTERN = re.compile(r"^[A-Za-z].*")
NAME_PREFIX = "P_"

# Row layout used by as_row()
COLUMNS = (
    "name", "reference", "value", "uncertainty", "unit", "type", "filename",
    "value_definition", "definition", "dependency", "dependency_value", "mapping",
)


# =============================================================================
# NAME STYLE
# =============================================================================

def check_name_style(name: str) -> str:
    """
    Normalize a property name to odML style.

    - Surrounding whitespace is trimmed.
    - Each internal blank is removed and the following character is
      upper-cased, merging words into camelCase.
    - A name not starting with an ASCII letter is prefixed with "P_".

    Examples:
        "foo bar" -> "fooBar"
        "1abc"    -> "P_1abc"
        " name "  -> "name"
    """
    name = name.strip()

    if " " in name:
        logger.warning("Invalid property name, generating camelCase by removing blanks", name=name)
    while " " in name:
        i = name.index(" ")
        name = name[:i] + name[i + 1:i + 2].upper() + name[i + 2:]

    if not NAME_PATTERN.match(name):
        logger.warning("Invalid property name, no leading letter", name=name, prefix=NAME_PREFIX)
        name = NAME_PREFIX + name
    return name


def _check_name(name: Any) -> None:
    """
    Enforce the construction-time name invariants.

    Raises:
        PropertyConstructionError: For empty or path-like names
    """
    if name is None or not str(name).strip():
        raise PropertyConstructionError(
            ConstructionRule.EMPTY_NAME,
            "'name' is mandatory and must not be empty",
        )
    if "/" in str(name):
        raise PropertyConstructionError(
            ConstructionRule.PATH_LIKE_NAME,
            f"'name' must not be like a path (contain '/'): {name!r}",
            name,
        )


def _parse_mapping(mapping: str) -> Optional[str]:
    """Return the mapping if it is an absolute URL, None otherwise."""
    parsed = urlparse(mapping.strip())
    if not parsed.scheme:
        return None
    if parsed.scheme == "file":
        return mapping.strip() if parsed.path else None
    return mapping.strip() if parsed.netloc else None


# =============================================================================
# PROPERTY
# =============================================================================

class Property:
    """
    A named, ordered collection of same-typed Values.

    The Property owns its Values exclusively. The back-reference to the
    containing section is a weak link.
    """

    def __init__(
        self,
        name: str,
        value: Any = None,
        *,
        unit: Optional[str] = None,
        uncertainty: Any = None,
        type: str | ValueType | None = None,
        reference: Optional[str] = None,
        filename: Optional[str] = None,
        definition: Optional[str] = None,
        value_definition: Optional[str] = None,
        dependency: Optional[str] = None,
        dependency_value: Optional[str] = None,
        mapping: Optional[str] = None,
    ):
        _check_name(name)
        self.name = name
        self.definition = definition or ""
        self.dependency = dependency or ""
        self.dependency_value = dependency_value or ""
        self._mapping: Optional[str] = None
        self._parent_ref: Optional[weakref.ref] = None
        self._values: list[Value] = []

        if value is not None:
            try:
                first = Value(value, unit, uncertainty, type, filename, value_definition, reference)
            except ValueConversionError as e:
                raise PropertyConstructionError(
                    ConstructionRule.INVALID_VALUE, str(e), name,
                ) from e
            first.set_associated_property(self)
            self._values.append(first)

        if mapping is not None:
            self.set_mapping(mapping)

    @classmethod
    def from_values(
        cls,
        name: str,
        values: list[Any],
        *,
        references: Optional[list[Optional[str]]] = None,
        unit: Optional[str] = None,
        uncertainties: Optional[list[Any]] = None,
        type: str | ValueType | None = None,
        filenames: Optional[list[Optional[str]]] = None,
        value_definitions: Optional[list[Optional[str]]] = None,
        definition: Optional[str] = None,
        dependency: Optional[str] = None,
        dependency_value: Optional[str] = None,
        mapping: Optional[str] = None,
    ) -> Property:
        """
        Create a Property holding several values at once.

        Side lists (references, uncertainties, ...) are matched to values
        by position and may be shorter than ``values``, never longer.

        Raises:
            PropertyConstructionError: For invalid names, side lists longer
                than the value list, duplicate or unconvertible contents
        """
        _check_name(name)
        references = references or []
        uncertainties = uncertainties or []
        filenames = filenames or []
        value_definitions = value_definitions or []

        for label, side in (
            ("uncertainties", uncertainties),
            ("filenames", filenames),
            ("references", references),
            ("value definitions", value_definitions),
        ):
            if len(side) > len(values):
                raise PropertyConstructionError(
                    ConstructionRule.INCONSISTENT_VALUES,
                    f"there must not be more {label} ({len(side)}) than values ({len(values)})",
                    name,
                )

        prop = cls(
            name,
            definition=definition,
            dependency=dependency,
            dependency_value=dependency_value,
            mapping=mapping,
        )
        for i, content in enumerate(values):
            try:
                value = Value(
                    content,
                    unit,
                    uncertainties[i] if i < len(uncertainties) else None,
                    type,
                    filenames[i] if i < len(filenames) else None,
                    value_definitions[i] if i < len(value_definitions) else None,
                    references[i] if i < len(references) else None,
                )
            except ValueConversionError as e:
                raise PropertyConstructionError(
                    ConstructionRule.INVALID_VALUE, str(e), name,
                ) from e
            if value in prop._values:
                raise PropertyConstructionError(
                    ConstructionRule.INCONSISTENT_VALUES,
                    f"duplicate value content {content!r}",
                    name,
                )
            value.set_associated_property(prop)
            prop._values.append(value)
        return prop

    # =========================================================================
    # CONTAINER LINK
    # =========================================================================

    @property
    def parent(self) -> Optional[Container]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def set_parent(self, container: Optional[Container]) -> None:
        self._parent_ref = weakref.ref(container) if container is not None else None

    def normalize_name(self) -> str:
        """Apply check_name_style() to this property's name."""
        self.name = check_name_style(self.name)
        return self.name

    # =========================================================================
    # TYPE, UNIT, MAPPING
    # =========================================================================

    @property
    def type(self) -> Optional[ValueType]:
        """The established type: that of the first value."""
        if not self._values:
            return None
        return self._values[0].type

    def set_type(self, type: str | ValueType | None) -> None:
        """Set the type of every value."""
        for value in self._values:
            value.type = type

    def get_unit(self, index: int = 0) -> Optional[str]:
        if not self._in_range(index):
            return None
        unit = self._values[index].unit
        return unit if is_set(unit) else None

    def set_unit(self, unit: Optional[str]) -> None:
        """Set the unit of every value."""
        if len(self._values) > 1:
            logger.warning(
                "Unit changed for all values",
                property=self.name,
                value_count=len(self._values),
            )
        for value in self._values:
            value.unit = unit

    def set_unit_at(self, unit: Optional[str], index: int) -> bool:
        return self._set_side(index, "unit", unit)

    @property
    def mapping(self) -> Optional[str]:
        return self._mapping

    def set_mapping(self, mapping: Optional[str]) -> bool:
        """
        Map this property to a terminology entry.

        Only absolute URLs are accepted; passing None removes the mapping.
        """
        if mapping is None:
            self._mapping = None
            return True
        parsed = _parse_mapping(mapping)
        if parsed is None:
            logger.error(
                "Mapping is not an absolute URL",
                property=self.name,
                mapping=mapping,
                reason=OperationFailure.INVALID_MAPPING.value,
            )
            return False
        self._mapping = parsed
        return True

    def remove_mapping(self) -> None:
        self._mapping = None

    def same_mapping(self, other_mapping: Optional[str]) -> bool:
        """True if both locators address the same terminology entry."""
        if self._mapping is None or other_mapping is None:
            return False
        return urldefrag(self._mapping)[0] == urldefrag(other_mapping)[0]

    # =========================================================================
    # VALUE STORE
    # =========================================================================

    def value_count(self) -> int:
        return len(self._values)

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self._values)

    def _report(self, failure: OperationFailure, message: str, **context: Any) -> bool:
        logger.error(message, property=self.name, reason=failure.value, **context)
        return False

    def _normalize_query(self, content: Any) -> Any:
        """Coerce a lookup key to the established type where possible."""
        established = self.type
        if established is None or content is None:
            return content
        try:
            return established.coerce(content)
        except ValueConversionError:
            return content

    def add_value(
        self,
        content: Any,
        *,
        reference: Optional[str] = None,
        unit: Optional[str] = None,
        uncertainty: Any = None,
        type: str | ValueType | None = None,
        filename: Optional[str] = None,
        definition: Optional[str] = None,
    ) -> bool:
        """
        Append a new value.

        - None content and duplicate content are rejected.
        - An unspecified unit defaults to the first value's unit.
        - An unspecified type defaults to the established type.
        - A declared type differing from the established one is logged
          but the value is still added; if no type was established yet,
          the property adopts the declared type.

        Returns:
            True if the value was added
        """
        if content is None:
            return self._report(OperationFailure.NULL_VALUE, "Value to add must not be None")

        established = self.type
        if unit is None and self._values:
            unit = self._values[0].unit
        declared = type is not None and not (isinstance(type, str) and not type.strip())

        try:
            to_add = Value(
                content, unit, uncertainty,
                type if declared else established,
                filename, definition, reference,
            )
        except ValueConversionError as e:
            return self._report(OperationFailure.INVALID_CONTENT, "Value could not be created", error=str(e))

        if to_add in self._values:
            return self._report(
                OperationFailure.DUPLICATE_VALUE,
                "Value to add already exists in property",
                content=to_add.content,
            )

        if to_add.type is not None:
            if established is None:
                self.set_type(to_add.type)
            elif to_add.type is not established:
                logger.warning(
                    "Type of added value differs from the property's type",
                    property=self.name,
                    added_type=to_add.type_tag,
                    property_type=established.value,
                    index=len(self._values),
                )

        to_add.set_associated_property(self)
        self._values.append(to_add)
        return True

    def add_values_from(self, other: Property) -> None:
        """Append copies of every value of another property; duplicates are skipped."""
        for value in other:
            duplicate = value.copy()
            if duplicate in self._values:
                self._report(
                    OperationFailure.DUPLICATE_VALUE,
                    "Value to add already exists in property",
                    content=duplicate.content,
                )
                continue
            duplicate.set_associated_property(self)
            self._values.append(duplicate)

    def set_value(self, content: Any) -> bool:
        """Replace the content of the only value."""
        if len(self._values) > 1:
            return self._report(
                OperationFailure.AMBIGUOUS_INDEX,
                "Property has more than one value, index must be specified",
            )
        return self.set_value_at(content, 0)

    def set_value_at(self, content: Any, index: int) -> bool:
        """
        Replace the content of the value at ``index``.

        Side fields of the slot are kept. When this property is named
        "name" and the new content is text, the owning container is
        renamed to that text.
        """
        if not self._in_range(index):
            return self._report(OperationFailure.INDEX_OUT_OF_RANGE, "Index out of range", index=index)
        if content is None:
            return self._report(OperationFailure.NULL_VALUE, "Value to set must not be None", index=index)

        slot = self._values[index]
        candidate = self._normalize_query(content)
        for i, value in enumerate(self._values):
            if i != index and value.content == candidate:
                return self._report(
                    OperationFailure.DUPLICATE_VALUE,
                    "Value to set already exists in property",
                    index=index,
                    content=content,
                )
        try:
            slot.content = content
        except ValueConversionError as e:
            return self._report(OperationFailure.INVALID_CONTENT, "Value could not be set", index=index, error=str(e))
        logger.debug("Value set", property=self.name, index=index)

        parent = self.parent
        if self.name.lower() == "name" and isinstance(content, str) and parent is not None:
            parent.set_name(content)
        return True

    def get_value_index(self, content: Any, start: int = 0) -> int:
        """Index of the first value at or after ``start`` holding ``content``, -1 if none."""
        content = self._normalize_query(content)
        for i in range(max(start, 0), len(self._values)):
            if self._values[i].content == content:
                return i
        logger.debug("Value not found", property=self.name, content=content)
        return -1

    def get_values(self) -> list[Any]:
        return [value.content for value in self._values]

    def get_value(self, index: int = 0) -> Any:
        if not self._in_range(index):
            logger.error("Index out of range", property=self.name, index=index)
            return None
        return self._values[index].content

    def get_whole_value(self, index: int = 0) -> Optional[Value]:
        if not self._in_range(index):
            logger.error("Index out of range", property=self.name, index=index)
            return None
        return self._values[index]

    def remove_value(self, content: Any) -> bool:
        """Remove the value holding ``content``."""
        if content is None:
            return self._report(OperationFailure.NULL_VALUE, "Value for removal must not be None")
        index = self.get_value_index(content)
        if index < 0:
            return self._report(OperationFailure.MISSING_VALUE, "Value for removal does not exist", content=content)
        self._detach(index)
        return True

    def remove_value_at(self, index: int) -> bool:
        if not self._in_range(index):
            return self._report(OperationFailure.INDEX_OUT_OF_RANGE, "Index for removal out of range", index=index)
        self._detach(index)
        return True

    def _detach(self, index: int) -> None:
        removed = self._values.pop(index)
        removed.set_associated_property(None)

    def remove_empty_values(self) -> None:
        # walk backwards so pending indices stay valid
        for i in range(len(self._values) - 1, -1, -1):
            if self._values[i].is_empty():
                self._detach(i)

    def is_empty(self) -> bool:
        return all(value.is_empty() for value in self._values)

    # =========================================================================
    # TYPED ACCESSORS
    # =========================================================================

    def get_number(self, index: int = 0) -> float:
        """Content at ``index`` as float; NaN if missing or not numeric."""
        value = self.get_whole_value(index)
        if value is None:
            return math.nan
        return value.as_number()

    def get_text(self, index: int = 0) -> Optional[str]:
        value = self.get_whole_value(index)
        return value.as_text() if value is not None else None

    def get_date(self, index: int = 0) -> Optional[date]:
        value = self.get_whole_value(index)
        return value.as_date() if value is not None else None

    def get_time(self, index: int = 0) -> Optional[time]:
        value = self.get_whole_value(index)
        return value.as_time() if value is not None else None

    # =========================================================================
    # PER-VALUE SIDE FIELDS
    # =========================================================================

    def _get_side(self, index: int, field_name: str) -> Any:
        if not self._in_range(index):
            logger.error("Index out of range", property=self.name, index=index, field=field_name)
            return None
        field_value = getattr(self._values[index], field_name)
        return field_value if is_set(field_value) else None

    def _set_side(self, index: int, field_name: str, field_value: Any) -> bool:
        if not self._in_range(index):
            return self._report(
                OperationFailure.INDEX_OUT_OF_RANGE,
                "Index out of range",
                index=index,
                field=field_name,
            )
        setattr(self._values[index], field_name, field_value)
        return True

    def _set_single(self, field_name: str, field_value: Any) -> bool:
        if len(self._values) > 1:
            return self._report(
                OperationFailure.AMBIGUOUS_INDEX,
                "Property has more than one value, index must be specified",
                field=field_name,
            )
        return self._set_side(0, field_name, field_value)

    def get_value_reference(self, index: int = 0) -> Optional[str]:
        return self._get_side(index, "reference")

    def get_value_references(self) -> list[Optional[str]]:
        return [value.reference for value in self._values]

    def set_value_reference(self, reference: Optional[str]) -> bool:
        return self._set_single("reference", reference)

    def set_value_reference_at(self, reference: Optional[str], index: int) -> bool:
        return self._set_side(index, "reference", reference)

    def get_value_uncertainty(self, index: int = 0) -> Any:
        return self._get_side(index, "uncertainty")

    def get_value_uncertainties(self) -> list[Any]:
        return [value.uncertainty for value in self._values]

    def set_value_uncertainty(self, uncertainty: Any) -> bool:
        return self._set_single("uncertainty", uncertainty)

    def set_value_uncertainty_at(self, uncertainty: Any, index: int) -> bool:
        return self._set_side(index, "uncertainty", uncertainty)

    def get_value_definition(self, index: int = 0) -> Optional[str]:
        return self._get_side(index, "definition")

    def get_value_definitions(self) -> list[Optional[str]]:
        return [value.definition for value in self._values]

    def set_value_definition(self, definition: Optional[str]) -> bool:
        return self._set_single("definition", definition)

    def set_value_definition_at(self, definition: Optional[str], index: int) -> bool:
        return self._set_side(index, "definition", definition)

    def get_value_filename(self, index: int = 0) -> Optional[str]:
        return self._get_side(index, "filename")

    def set_value_filename(self, filename: Optional[str]) -> bool:
        return self.set_value_filename_at(filename, 0)

    def set_value_filename_at(self, filename: Optional[str], index: int) -> bool:
        """Set the default file name; only binary values carry one."""
        if not self._in_range(index):
            return self._report(OperationFailure.INDEX_OUT_OF_RANGE, "Index out of range", index=index)
        if self._values[index].type is not ValueType.BINARY:
            return self._report(
                OperationFailure.NOT_BINARY,
                "Type must be binary to set a filename",
                index=index,
            )
        self._values[index].filename = filename
        return True

    def get_value_checksum(self, index: int = 0) -> Optional[str]:
        if not self._in_range(index):
            return None
        return self._values[index].checksum

    def get_value_encoder(self, index: int = 0) -> str:
        if not self._in_range(index):
            return ""
        return self._values[index].encoder

    # =========================================================================
    # MERGE AND VALIDATION
    # =========================================================================

    def merge(self, other: Property, policy: MergePolicy = DEFAULT_MERGE_POLICY) -> MergeResult:
        """Merge another property with the same name into this one."""
        return merge_properties(self, other, policy)

    def validate(self, reference: Property) -> ValidationReport:
        """Check this property against a terminology property."""
        return validate_property(self, reference)

    # =========================================================================
    # MISC
    # =========================================================================

    def as_row(self, index: int = 0) -> Optional[dict[str, Any]]:
        """One value and the property metadata, keyed by COLUMNS."""
        if not self._in_range(index):
            return None
        value = self._values[index]
        row = (
            self.name, value.reference, value.content, value.uncertainty, value.unit,
            value.type_tag, value.filename, value.definition, self.definition,
            self.dependency, self.dependency_value, self._mapping,
        )
        return dict(zip(COLUMNS, row))

    def copy(self) -> Property:
        """Deep copy, detached from any container."""
        duplicate = Property(
            self.name,
            definition=self.definition,
            dependency=self.dependency,
            dependency_value=self.dependency_value,
        )
        duplicate._mapping = self._mapping
        duplicate.add_values_from(self)
        return duplicate

    def describe(self) -> str:
        parent = self.parent
        path = parent.get_path() if parent is not None else ""
        return f"property '{self.name}'; completePath: {path}/{self.name}"

    def __iter__(self) -> Iterator[Value]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Property({self.name!r}, values={self.get_values()!r})"

"""
Container collaborator contract.

Properties live inside containers (odML sections). The section tree
itself is not part of this package; a Property only needs the small
lookup surface below, reached through a weak back-reference.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .property import Property


@runtime_checkable
class Container(Protocol):
    """What a Property expects from the section that holds it."""

    def get_path(self) -> str:
        """Absolute path of the container inside its document."""
        ...

    def contains_property(self, name: str) -> bool:
        ...

    def get_property(self, name: str) -> Optional[Property]:
        ...

    def set_name(self, name: str) -> None:
        """Rename the container; used when a 'name' property changes."""
        ...

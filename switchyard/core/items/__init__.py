"""Item model."""

from switchyard.core.items.definition import Item

__all__ = ["Item"]

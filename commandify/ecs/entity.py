"""Entity identifiers for the reference host."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Entity:
    """Opaque handle addressing one entity inside a World.

    Only the World that allocated an Entity can resolve it.
    """

    index: int

    def __repr__(self) -> str:
        return f"Entity({self.index})"

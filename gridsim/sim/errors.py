from __future__ import annotations

"""
File: gridsim/sim/errors.py
Purpose: Error types raised by the simulation core.
Key responsibilities:
- Setup-time rejection (InvalidPlacement) that leaves state untouched.
- Lifecycle rejection (InvalidStateTransition) with a caller-facing reason.
- Fatal entity lookup failures and per-entity tick validation failures.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(eq=False)
class SimulationError(Exception):
    reason: str

    def __str__(self) -> str:
        return self.reason


@dataclass(eq=False)
class InvalidPlacement(SimulationError):
    location: Optional[tuple[int, int]] = None

    def __str__(self) -> str:
        if self.location is None:
            return self.reason
        return f"{self.reason} at ({self.location[0]},{self.location[1]})"


@dataclass(eq=False)
class InvalidStateTransition(SimulationError):
    pass


@dataclass(eq=False)
class EntityNotFound(SimulationError, LookupError):
    """Unknown robot/task id; entities are never deleted mid-run so this is a bug."""


@dataclass(eq=False)
class EntityValidationError(SimulationError):
    """A single entity is inconsistent; the tick skips it for the current phase."""
    entity_id: Optional[int] = None


@dataclass(eq=False)
class GridNotFound(SimulationError, LookupError):
    grid_id: Optional[str] = None

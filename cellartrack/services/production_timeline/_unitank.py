"""Unitank run merging.

Synopsis:
Collapses the consecutive assignments of one lot on a single vessel into one
continuous occupancy run.

Glossary:
- Placed assignment: A tank assignment paired with its resolved resource and start.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from .types import AssignmentStatus, Resource, TankAssignment


@dataclass(frozen=True)
class PlacedAssignment:
    assignment: TankAssignment
    resource: Resource
    start: datetime


@dataclass(frozen=True)
class UnitankRun:
    resource: Resource
    placed: tuple[PlacedAssignment, ...]

    @property
    def start(self) -> datetime:
        return min(item.start for item in self.placed)

    @property
    def current(self) -> PlacedAssignment:
        for item in self.placed:
            if item.assignment.is_active:
                return item
        return self.placed[-1]

    @property
    def all_completed(self) -> bool:
        return all(item.assignment.is_completed for item in self.placed)

    @property
    def status(self) -> AssignmentStatus:
        if any(item.assignment.is_active for item in self.placed):
            return AssignmentStatus.ACTIVE
        if self.all_completed:
            return AssignmentStatus.COMPLETED
        return AssignmentStatus.PLANNED


# --- Unitank merger ---
# Purpose: Merge chronologically ordered assignments sharing one resource.
# Inputs: Placed assignments of one lot, ordered by start.
# Outputs: UnitankRun, or None when fewer than two or on different resources.
def merge_unitank(placed: Sequence[PlacedAssignment]) -> UnitankRun | None:
    if len(placed) < 2:
        return None
    if len({item.resource.id for item in placed}) != 1:
        return None
    return UnitankRun(resource=placed[0].resource, placed=tuple(placed))

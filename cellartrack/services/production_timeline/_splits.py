"""Split batch resolution.

Synopsis:
Identifies the parent lot and child lots of a split batch, selects the parent's
fermentation history, and decides whether a child assignment is historical
under the stale-status precedence rule.

Glossary:
- Child lot: A lot whose code ends in ``-<A..Z>`` or that references a parent lot.
- Parent lot: The pre-split lot; its code is a strict prefix of a child's code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .types import Batch, Lot, LotPhase, LotStatus, SplitChild, TankAssignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitResolution:
    parent_lots: tuple[Lot, ...]
    children: tuple[SplitChild, ...]


def is_child_lot(lot: Lot) -> bool:
    return bool(lot.child_suffix or lot.parent_lot_id)


def has_child_lots(batch: Batch) -> bool:
    return any(is_child_lot(lot) for lot in batch.lots)


# --- Parent lot test ---
# Purpose: Detect the pre-split lot among a batch's lots.
# Inputs: Candidate lot and all lots of the batch.
# Outputs: True when the lot is the parent of another lot.
def is_parent_lot(lot: Lot, lots: Sequence[Lot]) -> bool:
    if lot.child_suffix:
        return False
    for other in lots:
        if other.id == lot.id:
            continue
        if other.parent_lot_id == lot.id:
            return True
        if other.code.startswith(f"{lot.code}-"):
            return True
    return False


# --- Split resolver ---
# Purpose: Partition a split batch's lots into parents and children.
# Inputs: Batch.
# Outputs: SplitResolution, or None when the batch is rendered as a simple batch.
def resolve_split(batch: Batch) -> SplitResolution | None:
    if not batch.is_split:
        return None
    if len(batch.lots) < 2 or not has_child_lots(batch):
        logger.debug("Batch %s is flagged split but has no child lots", batch.code)
        return None

    parents = tuple(lot for lot in batch.lots if is_parent_lot(lot, batch.lots))
    children = tuple(
        SplitChild(lot=lot, suffix=lot.child_suffix)
        for lot in batch.lots
        if lot not in parents
    )
    return SplitResolution(parent_lots=parents, children=children)


def parent_history(lot: Lot) -> tuple[TankAssignment, ...]:
    return tuple(
        assignment
        for assignment in lot.assignments
        if assignment.is_completed and assignment.phase is LotPhase.FERMENTATION
    )


# --- Child assignment history test ---
# Purpose: Apply the stale-status precedence rule for split child lots.
# Inputs: Child lot and one of its assignments.
# Outputs: True when the assignment renders as history.
def is_historical_child_assignment(lot: Lot, assignment: TankAssignment) -> bool:
    if not assignment.is_completed:
        return False
    if lot.status is LotStatus.ACTIVE and lot.phase is not None and lot.phase is assignment.phase:
        logger.debug(
            "Assignment %s on active lot %s is marked COMPLETED in its current phase; treating as current",
            assignment.id,
            lot.code,
        )
        return False
    return True


# --- Current lot selector ---
# Purpose: Pick the lot a batch is currently represented by.
# Inputs: Batch.
# Outputs: Active child lot, else active lot, else first lot, else None.
def select_current_lot(batch: Batch) -> Lot | None:
    active = [lot for lot in batch.lots if not lot.is_completed]
    for lot in active:
        if is_child_lot(lot):
            return lot
    if active:
        return active[0]
    return batch.lots[0] if batch.lots else None

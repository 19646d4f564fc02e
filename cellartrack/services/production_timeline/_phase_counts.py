"""Dashboard phase counts.

Synopsis:
Counts in-flight production by lot rather than by batch, so a blend contributes
one unit and a split contributes one unit per child lot, and reports how many
distinct blend lots and split batches are currently active.

Glossary:
- Countable lot: A non-completed lot with a phase that is not a split parent.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from ._blends import BlendTable, detect_blends, stable_batch_order
from ._splits import is_parent_lot, select_current_lot
from .types import Batch, BatchPhase, Lot, LotPhase, PhaseCounts

_LOT_BUCKETS = {
    LotPhase.FERMENTATION: "fermenting",
    LotPhase.CONDITIONING: "conditioning",
    LotPhase.BRIGHT: "ready",
    LotPhase.PACKAGING: "packaging",
}

_BATCH_BUCKETS = {
    BatchPhase.PLANNED: "planned",
    BatchPhase.BREWING: "brewing",
    BatchPhase.FERMENTING: "fermenting",
    BatchPhase.CONDITIONING: "conditioning",
    BatchPhase.BRIGHT: "ready",
    BatchPhase.READY: "ready",
    BatchPhase.PACKAGING: "packaging",
}


def _countable_lots(batch: Batch) -> list[Lot]:
    return [
        lot
        for lot in batch.lots
        if not lot.is_completed and lot.phase is not None and not is_parent_lot(lot, batch.lots)
    ]


def _has_blend_evidence(lot: Lot, batch: Batch, blends: BlendTable) -> bool:
    if lot.is_blend_result or (lot.batch_count or 0) >= 2:
        return True
    if len(blends.lot_batches.get(lot.id, ())) >= 2 or lot.id in blends.lot_ids:
        return True
    if batch.is_blend:
        current = select_current_lot(batch)
        return current is not None and current.id == lot.id
    return False


# --- Phase aggregator ---
# Purpose: Produce lot-based dashboard counts.
# Inputs: Snapshot batches and, optionally, the already-built blend table.
# Outputs: PhaseCounts.
def aggregate_phase_counts(batches: Iterable[Batch], blends: BlendTable | None = None) -> PhaseCounts:
    """Count in-flight production: COMPLETED batches and lots are excluded from every bucket, including blended and split."""
    batches = tuple(batches)
    if blends is None:
        blends = detect_blends(batches)

    counts: Counter[str] = Counter()
    counted: set[str] = set()
    blended: set[str] = set()
    split: set[str] = set()

    for batch in stable_batch_order(batches):
        if batch.is_completed:
            continue
        if batch.is_split or any(lot.child_suffix for lot in batch.lots):
            split.add(batch.id)

        for lot in batch.lots:
            if not lot.is_completed and _has_blend_evidence(lot, batch, blends):
                blended.add(lot.id)

        countable = _countable_lots(batch)
        if not countable:
            bucket = _BATCH_BUCKETS.get(batch.phase)
            if bucket:
                counts[bucket] += 1
            continue
        for lot in countable:
            if lot.id in counted:
                continue
            counted.add(lot.id)
            counts[_LOT_BUCKETS[lot.phase]] += 1

    return PhaseCounts(
        planned=counts["planned"],
        brewing=counts["brewing"],
        fermenting=counts["fermenting"],
        conditioning=counts["conditioning"],
        ready=counts["ready"],
        packaging=counts["packaging"],
        blended=len(blended),
        split=len(split),
    )

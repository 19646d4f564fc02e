"""Volume conservation checks.

Synopsis:
Reports blend lots whose recorded member contributions do not add up to the lot
volume, and split batches whose child lots do not add up to the batch volume.
The report is informational; reconciliation never rejects a snapshot over it.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ._blends import stable_batch_order
from ._splits import resolve_split
from .types import Batch, ConservationIssue, Lot

logger = logging.getLogger(__name__)

TOLERANCE_RATIO = 0.01
MIN_TOLERANCE = 0.5


def within_tolerance(expected: float, actual: float) -> bool:
    return abs(expected - actual) <= max(abs(expected) * TOLERANCE_RATIO, MIN_TOLERANCE)


# --- Conservation report ---
# Purpose: Compare recorded volumes across blend and split relationships.
# Inputs: Snapshot batches.
# Outputs: Tuple of ConservationIssue (empty when everything balances).
def conservation_report(batches: Iterable[Batch]) -> tuple[ConservationIssue, ...]:
    ordered = stable_batch_order(batches)
    issues: list[ConservationIssue] = []

    copies: dict[str, list[tuple[str, Lot]]] = {}
    for batch in ordered:
        for lot in batch.lots:
            copies.setdefault(lot.id, []).append((batch.id, lot))

    for lot_id in sorted(copies):
        entries = copies[lot_id]
        if len({batch_id for batch_id, _ in entries}) < 2:
            continue
        contributions = [lot.volume_contribution for _, lot in entries if lot.volume_contribution is not None]
        lot = entries[0][1]
        if not contributions or lot.volume <= 0:
            continue
        total = sum(contributions)
        if not within_tolerance(lot.volume, total):
            issues.append(ConservationIssue("blend", lot.id, lot.code, lot.volume, total))

    for batch in ordered:
        split = resolve_split(batch)
        if split is None or batch.volume <= 0:
            continue
        total = sum(child.lot.volume for child in split.children)
        if not within_tolerance(batch.volume, total):
            issues.append(ConservationIssue("split", batch.id, batch.code, batch.volume, total))

    for issue in issues:
        logger.debug(
            "Volume mismatch on %s %s: expected %.2f, recorded %.2f",
            issue.kind,
            issue.subject_code,
            issue.expected,
            issue.actual,
        )
    return tuple(issues)

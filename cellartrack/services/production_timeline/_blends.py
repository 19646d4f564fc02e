"""Blend detection across batches.

Synopsis:
Builds the immutable lot-to-batches table per phase group and turns every lot
shared by two or more batches into a ``BlendGroup`` carrying its stable member
order, representative assignment, origin batch and combined presentation.

Glossary:
- Phase group: The set of lot phases a blend is scoped to (conditioning or fermentation).
- Origin batch: The member whose only lot is the shared lot.
- Renderer: The first member in stable order; the only one emitting combined events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Mapping, Sequence

from ...utils.datetime_helpers import ensure_timezone_aware, parse_timestamp
from .types import Batch, BlendGroup, Lot, PhaseGroup, TankAssignment

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# --- Member order key ---
# Purpose: Order batches by creation time, then code, then id.
# Inputs: Batch.
# Outputs: Sortable tuple independent of snapshot position.
def member_sort_key(batch: Batch) -> tuple:
    created = parse_timestamp(batch.created_at)
    if created is None:
        return (1, _EPOCH, batch.code, batch.id)
    return (0, ensure_timezone_aware(created), batch.code, batch.id)


def stable_batch_order(batches: Iterable[Batch]) -> tuple[Batch, ...]:
    return tuple(sorted(batches, key=member_sort_key))


@dataclass(frozen=True)
class BlendTable:
    """Blend groups keyed for lookup by batch and by lot."""

    groups: tuple[BlendGroup, ...] = ()
    lot_batches: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def for_batch(self, batch_id: str) -> tuple[BlendGroup, ...]:
        return tuple(group for group in self.groups if batch_id in group.member_ids)

    @property
    def lot_ids(self) -> frozenset[str]:
        return frozenset(group.lot.id for group in self.groups)


def lot_in_group(lot: Lot, phase_group: PhaseGroup) -> bool:
    """A lot's own phase decides its group; assignments only when it has none."""
    phases = phase_group.phases
    if lot.phase is not None:
        return lot.phase in phases
    active = [a for a in lot.assignments if a.is_active]
    return any(assignment.phase in phases for assignment in (active or lot.assignments))


# --- Merged lot view ---
# Purpose: Combine the per-batch copies of a shared lot into one view.
# Inputs: Lot copies in member order.
# Outputs: Lot whose assignments are the id-deduplicated union of all copies.
def _merged_lot(copies: Sequence[Lot]) -> Lot:
    assignments: list[TankAssignment] = []
    seen: set[str] = set()
    for copy in copies:
        for assignment in copy.assignments:
            if assignment.id not in seen:
                seen.add(assignment.id)
                assignments.append(assignment)
    base = copies[0]
    phase = next((copy.phase for copy in copies if copy.phase is not None), None)
    return replace(base, phase=phase, assignments=tuple(assignments))


def _representative(lot: Lot, phase_group: PhaseGroup) -> TankAssignment | None:
    in_group = [a for a in lot.assignments if (a.phase or lot.phase) in phase_group.phases]
    for assignment in in_group:
        if assignment.is_active:
            return assignment
    return in_group[0] if in_group else None


# --- Combined label ---
# Purpose: Join member codes, prefixed by the lot's BLEND- code when present.
# Inputs: Shared lot and member batches.
# Outputs: Display label.
def combined_label(lot: Lot, members: Sequence[Batch]) -> str:
    joined = " + ".join(batch.code for batch in members)
    if lot.is_blend_code:
        return f"{lot.code}: {joined}"
    return joined


def combined_recipe_label(members: Sequence[Batch]) -> str:
    names: list[str] = []
    for batch in members:
        if batch.recipe_name and batch.recipe_name not in names:
            names.append(batch.recipe_name)
    return " / ".join(names)


# --- Combined volume ---
# Purpose: Sum member contributions (member batch volume when unrecorded).
# Inputs: Shared lot view and (batch, lot copy) pairs in member order.
# Outputs: Combined volume.
def combined_volume(lot: Lot, entries: Sequence[tuple[Batch, Lot]]) -> float:
    total = 0.0
    for batch, copy in entries:
        if copy.volume_contribution is not None:
            total += copy.volume_contribution
        else:
            total += batch.volume
    return total if total > 0 else lot.volume


# --- Blend detector ---
# Purpose: Pass-one table of shared lots per phase group.
# Inputs: All snapshot batches.
# Outputs: Immutable BlendTable.
def detect_blends(batches: Iterable[Batch]) -> BlendTable:
    entries_by_lot: dict[str, list[tuple[Batch, Lot]]] = {}
    for batch in stable_batch_order(batches):
        seen: set[str] = set()
        for lot in batch.lots:
            if lot.id in seen:
                continue
            seen.add(lot.id)
            entries_by_lot.setdefault(lot.id, []).append((batch, lot))

    lot_batches: dict[str, tuple[str, ...]] = {}
    groups: list[BlendGroup] = []
    for lot_id in sorted(entries_by_lot):
        entries = _distinct_batches(entries_by_lot[lot_id])
        lot_batches[lot_id] = tuple(batch.id for batch, _ in entries)
        if len(entries) < 2:
            continue

        members = [batch for batch, _ in entries]
        lot = _merged_lot([copy for _, copy in entries])
        origin = next(
            (batch.id for batch in members if len(batch.lots) == 1 and batch.lots[0].id == lot_id),
            None,
        )
        for phase_group in PhaseGroup:
            if not lot_in_group(lot, phase_group):
                continue
            groups.append(
                BlendGroup(
                    lot=lot,
                    phase_group=phase_group,
                    member_ids=tuple(batch.id for batch in members),
                    label=combined_label(lot, members),
                    recipe_label=combined_recipe_label(members),
                    volume=combined_volume(lot, entries),
                    representative=_representative(lot, phase_group),
                    origin_batch_id=origin,
                )
            )
            logger.debug(
                "Blend lot %s (%s group) shared by %s",
                lot.code,
                phase_group.value,
                ", ".join(batch.code for batch in members),
            )

    return BlendTable(groups=tuple(groups), lot_batches=lot_batches)


def _distinct_batches(entries: Sequence[tuple[Batch, Lot]]) -> list[tuple[Batch, Lot]]:
    distinct: list[tuple[Batch, Lot]] = []
    seen: set[str] = set()
    for batch, lot in entries:
        if batch.id not in seen:
            seen.add(batch.id)
            distinct.append((batch, lot))
    return distinct

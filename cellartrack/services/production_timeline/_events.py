"""Occupancy event synthesis.

Synopsis:
Pass two of the reconciliation pipeline: a fold over the per-batch cases that
emits resource occupancy events. Simple lots render per assignment (merged into
one run on a unitank), split children render per assignment with suffixed
labels, blend lots render once through their first member, and batches without
lots fall back to one batch-level event.

Glossary:
- Historical event: An interval representing completed occupancy.
- Presentation: Label, membership and completion context shared by a lot's events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from ._dates import DateResolver, EndRequest, ResolvedEnd, next_phase_start_value, phase_start_value
from ._resources import ResourceIndex
from ._splits import is_historical_child_assignment, parent_history
from ._unitank import PlacedAssignment, UnitankRun, merge_unitank
from .types import (
    Batch,
    BatchCase,
    BatchPhase,
    BlendGroup,
    BlendMemberCase,
    BlendOriginCase,
    EventBadge,
    Lot,
    LotPhase,
    OccupancyEvent,
    Resource,
    SimpleCase,
    SplitCase,
    TankAssignment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Presentation:
    label: str
    recipe_label: str
    batch_ids: tuple[str, ...]
    volume: float
    member_count: int = 1
    is_blend: bool = False
    is_split_lot: bool = False
    entity_completed: bool = False
    completed_at: Any = None
    split_percentage: float | None = None
    stale_rule: bool = False
    merge: bool = True
    lot_fallback: bool = False


def _event_phase(phase: LotPhase | BatchPhase | None, fallback: BatchPhase) -> BatchPhase:
    if isinstance(phase, LotPhase):
        return phase.batch_phase
    if isinstance(phase, BatchPhase):
        return phase
    return fallback


def _fill_percent(volume: float, resource: Resource) -> int:
    if resource.capacity <= 0 or volume <= 0:
        return 0
    return min(100, int(round(volume / resource.capacity * 100)))


def _split_label(percentage: float | None) -> str:
    if percentage is None:
        return "Split"
    if percentage <= 1:
        percentage *= 100
    return f"{percentage:.0f}%"


class EventSynthesizer:
    """Fold batch cases into deduplicated, time-ordered occupancy events."""

    def __init__(self, resolver: DateResolver, resources: ResourceIndex, batches: Iterable[Batch]):
        self.resolver = resolver
        self.resources = resources
        self._batches: Mapping[str, Batch] = {batch.id: batch for batch in batches}

    # --- Synthesize ---
    # Purpose: Render every case, drop repeated event ids, order the result.
    # Inputs: Batch cases in stable batch order.
    # Outputs: Tuple of events sorted by (start, resource id, event id).
    def synthesize(self, cases: Iterable[BatchCase]) -> tuple[OccupancyEvent, ...]:
        events: dict[str, OccupancyEvent] = {}
        for case in cases:
            for event in self.render(case):
                if event.id in events:
                    logger.debug("Skipping duplicate event %s for batch %s", event.id, case.batch.code)
                    continue
                events[event.id] = event
        return tuple(sorted(events.values(), key=lambda event: event.sort_key))

    def render(self, case: BatchCase) -> list[OccupancyEvent]:
        if isinstance(case, SplitCase):
            return self._render_split(case)
        if isinstance(case, BlendOriginCase):
            return self._render_blend_origin(case)
        if isinstance(case, BlendMemberCase):
            return self._render_blend_member(case)
        if isinstance(case, SimpleCase):
            return self._render_simple(case)
        raise TypeError(f"Unsupported batch case: {type(case).__name__}")

    # --- Case renderers ---
    def _render_simple(self, case: SimpleCase) -> list[OccupancyEvent]:
        if not case.lots:
            return self._batch_events(case.batch)
        events: list[OccupancyEvent] = []
        for lot in case.lots:
            events.extend(self._lot_events(case.batch, lot, lot.assignments, self._simple_view(case.batch, lot)))
        return events

    def _render_blend_member(self, case: BlendMemberCase) -> list[OccupancyEvent]:
        events: list[OccupancyEvent] = []
        for lot in case.lots:
            events.extend(self._lot_events(case.batch, lot, lot.assignments, self._simple_view(case.batch, lot)))
        events.extend(self._blend_events(case.batch, case.blends))
        return events

    def _render_blend_origin(self, case: BlendOriginCase) -> list[OccupancyEvent]:
        batch = case.batch
        events = self._blend_events(batch, case.blends)
        groups_by_lot: dict[str, list[BlendGroup]] = {}
        for group in case.blends:
            groups_by_lot.setdefault(group.lot.id, []).append(group)
        for groups in groups_by_lot.values():
            lot = groups[0].lot
            history = [a for a in lot.assignments if not any(group.in_group(a) for group in groups)]
            if history:
                events.extend(self._lot_events(batch, lot, history, self._simple_view(batch, lot)))
        return events

    def _render_split(self, case: SplitCase) -> list[OccupancyEvent]:
        batch = case.batch
        events: list[OccupancyEvent] = []
        for lot in case.parent_lots:
            view = _Presentation(
                label=batch.code,
                recipe_label=batch.recipe_name,
                batch_ids=(batch.id,),
                volume=batch.volume or lot.volume,
                merge=False,
            )
            events.extend(self._lot_events(batch, lot, parent_history(lot), view))
        # Blend naming wins over split naming on every child of a blend member.
        blend_code = self._first_member_code(case.blends[0]) if case.blends else None
        for child in case.children:
            lot = child.lot
            if blend_code:
                label = blend_code
            else:
                label = f"{batch.code}-{child.suffix}" if child.suffix else batch.code
            view = _Presentation(
                label=label,
                recipe_label=batch.recipe_name,
                batch_ids=(batch.id,),
                volume=lot.volume,
                is_split_lot=True,
                entity_completed=lot.is_completed or batch.is_completed,
                completed_at=lot.completed_at or batch.completed_at,
                split_percentage=lot.batch_percentage,
                stale_rule=True,
                merge=False,
                lot_fallback=True,
            )
            events.extend(self._lot_events(batch, lot, lot.assignments, view))
        events.extend(self._blend_events(batch, case.blends))
        return events

    def _blend_events(self, batch: Batch, groups: Sequence[BlendGroup]) -> list[OccupancyEvent]:
        events: list[OccupancyEvent] = []
        for group in groups:
            if group.renderer_id != batch.id:
                continue
            in_group = [a for a in group.lot.assignments if group.in_group(a)]
            events.extend(self._lot_events(batch, group.lot, in_group, self._blend_view(batch, group)))
        return events

    def _first_member_code(self, group: BlendGroup) -> str:
        first = self._batches.get(group.renderer_id)
        return first.code if first else group.renderer_id

    # --- Presentations ---
    def _simple_view(self, batch: Batch, lot: Lot) -> _Presentation:
        combined = len(batch.member_codes) > 1
        return _Presentation(
            label=" + ".join(batch.member_codes) if combined else batch.code,
            recipe_label=batch.recipe_name,
            batch_ids=(batch.id,),
            volume=lot.volume or batch.volume,
            member_count=len(batch.member_codes) if combined else (lot.batch_count or 1),
            is_blend=combined,
            entity_completed=lot.is_completed or batch.is_completed,
            completed_at=lot.completed_at or batch.completed_at,
            lot_fallback=True,
        )

    def _blend_view(self, batch: Batch, group: BlendGroup) -> _Presentation:
        members = [self._batches[batch_id] for batch_id in group.member_ids if batch_id in self._batches]
        return _Presentation(
            label=group.label,
            recipe_label=group.recipe_label,
            batch_ids=group.member_ids,
            volume=group.volume,
            member_count=len(group.member_ids),
            is_blend=True,
            entity_completed=group.lot.is_completed or all(member.is_completed for member in members),
            completed_at=group.lot.completed_at or batch.completed_at,
            lot_fallback=not group.lot.assignments,
        )

    # --- Lot events ---
    # Purpose: Render one lot's assignments (merged when they form a unitank run).
    # Inputs: Batch supplying lifecycle dates, lot, assignments to render, presentation.
    # Outputs: List of events; unresolvable assignments are dropped.
    def _lot_events(
        self,
        batch: Batch,
        lot: Lot,
        assignments: Sequence[TankAssignment],
        view: _Presentation,
    ) -> list[OccupancyEvent]:
        if not assignments:
            if view.lot_fallback and not lot.assignments:
                event = self._lot_level_event(batch, lot, view)
                return [event] if event is not None else []
            return []

        placed = self._place(batch, lot, assignments)
        run = merge_unitank(placed) if view.merge else None
        if run is not None:
            return [self._unitank_event(batch, lot, run, view)]
        return [self._assignment_event(batch, lot, item, view) for item in placed]

    def _place(self, batch: Batch, lot: Lot, assignments: Sequence[TankAssignment]) -> list[PlacedAssignment]:
        placed: list[PlacedAssignment] = []
        for assignment in assignments:
            resource = self.resources.resolve(
                current_tank_id=assignment.tank_id,
                tank_id=assignment.equipment_id,
                tank_name=assignment.tank_name,
            )
            if resource is None:
                logger.debug("Dropping assignment %s of lot %s: no resource", assignment.id, lot.code)
                continue
            start = self.resolver.resolve_start(
                assignment.planned_start,
                assignment.actual_start,
                phase_start_value(batch, assignment.phase or lot.phase),
                batch.created_at,
                batch.planned_date,
            )
            placed.append(PlacedAssignment(assignment=assignment, resource=resource, start=start))
        placed.sort(key=lambda item: (item.start, item.assignment.id))
        return placed

    def _assignment_done(self, lot: Lot, assignment: TankAssignment, view: _Presentation) -> bool:
        if view.stale_rule:
            return is_historical_child_assignment(lot, assignment)
        return assignment.is_completed

    def _assignment_end(
        self,
        batch: Batch,
        lot: Lot,
        item: PlacedAssignment,
        view: _Presentation,
        done: bool,
    ) -> ResolvedEnd:
        assignment = item.assignment
        phase = assignment.phase or lot.phase
        return self.resolver.resolve_end(
            EndRequest(
                phase=_event_phase(phase, batch.phase).value,
                start=item.start,
                entity_completed=view.entity_completed,
                completed_at=view.completed_at,
                assignment_completed=done,
                actual_end=assignment.actual_end,
                next_phase_start=next_phase_start_value(batch, phase),
                updated_at=assignment.updated_at,
                planned_end=assignment.planned_end,
                estimated_end=batch.estimated_end,
            )
        )

    def _assignment_event(self, batch: Batch, lot: Lot, item: PlacedAssignment, view: _Presentation) -> OccupancyEvent:
        done = self._assignment_done(lot, item.assignment, view)
        historical = done or view.entity_completed
        resolved = self._assignment_end(batch, lot, item, view, done)
        if historical:
            status = "COMPLETED"
        elif item.assignment.is_completed:
            status = "ACTIVE"
        else:
            status = item.assignment.status.value
        return self._event(
            event_id=f"assignment:{item.assignment.id}",
            resource=item.resource,
            start=item.start,
            resolved=resolved,
            phase=_event_phase(item.assignment.phase or lot.phase, batch.phase),
            status=status,
            historical=historical,
            view=view,
            lot=lot,
        )

    def _unitank_event(self, batch: Batch, lot: Lot, run: UnitankRun, view: _Presentation) -> OccupancyEvent:
        current = run.current
        done = current.assignment.is_completed
        historical = run.all_completed or view.entity_completed
        resolved = self._assignment_end(batch, lot, current, view, done)
        start = run.start
        resolved = ResolvedEnd(end=max(resolved.end, start), is_overdue=resolved.is_overdue)
        return self._event(
            event_id=f"unitank:{lot.id}:{run.placed[0].assignment.id}",
            resource=run.resource,
            start=start,
            resolved=resolved,
            phase=_event_phase(current.assignment.phase or lot.phase, batch.phase),
            status="COMPLETED" if historical else run.status.value,
            historical=historical,
            view=view,
            lot=lot,
        )

    def _lot_level_event(self, batch: Batch, lot: Lot, view: _Presentation) -> OccupancyEvent | None:
        phase = _event_phase(lot.phase, batch.phase)
        resource = self.resources.resolve(
            current_tank_id=batch.current_tank_id,
            tank_id=batch.tank_id,
            tank_name=batch.tank_name,
            phase=phase.value,
        )
        if resource is None:
            logger.debug("Dropping lot %s of batch %s: no assignments and no resource", lot.code, batch.code)
            return None
        start = self.resolver.resolve_start(
            phase_start_value(batch, lot.phase or batch.phase),
            batch.created_at,
            batch.planned_date,
        )
        resolved = self.resolver.resolve_end(
            EndRequest(
                phase=phase.value,
                start=start,
                entity_completed=view.entity_completed,
                completed_at=view.completed_at,
                next_phase_start=next_phase_start_value(batch, lot.phase or batch.phase),
                estimated_end=batch.estimated_end,
            )
        )
        return self._event(
            event_id=f"lot:{lot.id}",
            resource=resource,
            start=start,
            resolved=resolved,
            phase=phase,
            status="COMPLETED" if view.entity_completed else "ACTIVE",
            historical=view.entity_completed,
            view=view,
            lot=lot,
        )

    # --- Batch-level event ---
    # Purpose: Render a batch without lots using its own phase and tank fields.
    # Inputs: Batch.
    # Outputs: Zero or one event.
    def _batch_events(self, batch: Batch) -> list[OccupancyEvent]:
        phase = batch.phase
        resource = self.resources.resolve(
            current_tank_id=batch.current_tank_id,
            tank_id=batch.tank_id,
            tank_name=batch.tank_name,
            phase=phase.value,
        )
        if resource is None:
            logger.debug("Dropping batch %s (%s): no resource resolves", batch.code, phase.value)
            return []

        start = self.resolver.resolve_start(
            phase_start_value(batch, phase),
            batch.created_at,
            batch.planned_date,
        )
        resolved = self.resolver.resolve_end(
            EndRequest(
                phase=phase.value,
                start=start,
                entity_completed=batch.is_completed,
                completed_at=batch.completed_at,
                next_phase_start=next_phase_start_value(batch, phase),
                estimated_end=batch.estimated_end,
            )
        )
        combined = len(batch.member_codes) > 1
        view = _Presentation(
            label=" + ".join(batch.member_codes) if combined else batch.code,
            recipe_label=batch.recipe_name,
            batch_ids=(batch.id,),
            volume=batch.volume,
            member_count=len(batch.member_codes) if combined else 1,
            is_blend=combined,
        )
        if batch.is_completed:
            status = "COMPLETED"
        elif phase is BatchPhase.PLANNED:
            status = "PLANNED"
        else:
            status = "ACTIVE"
        return [
            self._event(
                event_id=f"batch:{batch.id}",
                resource=resource,
                start=start,
                resolved=resolved,
                phase=phase,
                status=status,
                historical=batch.is_completed,
                view=view,
            )
        ]

    def _event(
        self,
        *,
        event_id: str,
        resource: Resource,
        start,
        resolved: ResolvedEnd,
        phase: BatchPhase,
        status: str,
        historical: bool,
        view: _Presentation,
        lot: Lot | None = None,
    ) -> OccupancyEvent:
        overdue = resolved.is_overdue and not historical
        return OccupancyEvent(
            id=event_id,
            resource_id=resource.id,
            resource_name=resource.name,
            lane=resource.category.value,
            start=start,
            end=max(resolved.end, start),
            label=view.label,
            recipe_label=view.recipe_label,
            phase=phase.value,
            status=status,
            is_historical=historical,
            is_blend=view.is_blend,
            is_split_lot=view.is_split_lot,
            batch_ids=view.batch_ids,
            volume=view.volume,
            fill_percent=_fill_percent(view.volume, resource),
            is_overdue=overdue,
            lot_id=lot.id if lot else None,
            lot_code=lot.code if lot else None,
            badges=self._badges(phase, view, historical, overdue),
        )

    def _badges(self, phase: BatchPhase, view: _Presentation, historical: bool, overdue: bool) -> tuple[EventBadge, ...]:
        badges = [EventBadge("phase", phase.value)]
        if view.member_count > 1:
            badges.append(EventBadge("batch_count", f"×{view.member_count}"))
        if view.is_split_lot:
            badges.append(EventBadge("split", _split_label(view.split_percentage)))
        if view.is_blend:
            badges.append(EventBadge("blend", "Blend"))
        if overdue:
            badges.append(EventBadge("overdue", "Overdue"))
        if historical:
            badges.append(EventBadge("historical", "Completed"))
        return tuple(badges)

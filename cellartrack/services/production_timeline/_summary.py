"""Per-resource occupancy summary.

Synopsis:
Condenses the event list into one row per resource: what occupies it today,
how many bookings are active or upcoming, and how busy it is over a window.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Sequence

from .types import OccupancyEvent, Resource, ResourceOccupancy

DEFAULT_WINDOW_DAYS = 30


def _occupied_days(events: Sequence[OccupancyEvent], window_start: datetime, window_end: datetime) -> float:
    spans = sorted(
        (max(event.start, window_start), min(event.end, window_end))
        for event in events
        if event.end > window_start and event.start < window_end
    )
    total = 0.0
    current_start = current_end = None
    for start, end in spans:
        if current_end is None or start > current_end:
            if current_end is not None:
                total += (current_end - current_start).total_seconds()
            current_start, current_end = start, end
        else:
            current_end = max(current_end, end)
    if current_end is not None:
        total += (current_end - current_start).total_seconds()
    return total / 86400


# --- Occupancy summary ---
# Purpose: Summarize current, upcoming and windowed utilisation per resource.
# Inputs: Events, resources in display order, today's anchor, window length.
# Outputs: Tuple of ResourceOccupancy rows.
def summarize_occupancy(
    events: Iterable[OccupancyEvent],
    resources: Iterable[Resource],
    today: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> tuple[ResourceOccupancy, ...]:
    events = tuple(events)
    window_days = max(int(window_days), 1)
    window_end = today + timedelta(days=window_days)

    rows: list[ResourceOccupancy] = []
    for resource in resources:
        own = [event for event in events if event.resource_id == resource.id]
        live = [event for event in own if not event.is_historical]
        active = [event for event in live if event.start <= today <= event.end]
        planned = [event for event in live if event.start > today]
        occupied = _occupied_days(own, today, window_end)
        rows.append(
            ResourceOccupancy(
                resource_id=resource.id,
                resource_name=resource.name,
                lane=resource.category.value,
                active_count=len(active),
                planned_count=len(planned),
                current_label=active[0].label if active else None,
                utilisation_percent=min(100, int(round(occupied / window_days * 100))),
            )
        )
    return tuple(rows)

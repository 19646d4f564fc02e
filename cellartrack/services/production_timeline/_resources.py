"""Resource lookup for occupancy intervals.

Synopsis:
Maps the loose tank references found on batches and assignments onto known
resources, falling back to the first brewhouse for brew-day phases.

Glossary:
- Lane: The resource category an event is drawn in (brewhouse/fermenter/conditioning).
"""

from __future__ import annotations

import logging
from typing import Iterable

from .types import BatchPhase, Resource

logger = logging.getLogger(__name__)

_BREW_DAY_PHASES = {BatchPhase.PLANNED.value, BatchPhase.BREWING.value}


class ResourceIndex:
    """Lookup table over the snapshot resources, preserving snapshot order."""

    def __init__(self, resources: Iterable[Resource]):
        self._ordered = tuple(resources)
        self._by_id = {}
        self._by_name = {}
        for resource in self._ordered:
            self._by_id.setdefault(resource.id, resource)
            self._by_name.setdefault(resource.name.strip().lower(), resource)
        self._brewhouse = next((r for r in self._ordered if r.is_brewhouse), None)

    def get(self, resource_id: str | None) -> Resource | None:
        if resource_id is None:
            return None
        return self._by_id.get(str(resource_id))

    # --- Resolve ---
    # Purpose: Walk the resource fallback chain.
    # Inputs: Explicit current-tank id, generic tank id, tank name, phase name.
    # Outputs: Resource or None when nothing resolves.
    def resolve(
        self,
        *,
        current_tank_id: str | None = None,
        tank_id: str | None = None,
        tank_name: str | None = None,
        phase: str | None = None,
    ) -> Resource | None:
        for candidate in (current_tank_id, tank_id):
            resource = self.get(candidate)
            if resource is not None:
                return resource
        if tank_name:
            resource = self._by_name.get(tank_name.strip().lower())
            if resource is not None:
                return resource
        if (phase or "").upper() in _BREW_DAY_PHASES and self._brewhouse is not None:
            return self._brewhouse
        if current_tank_id or tank_id or tank_name:
            logger.debug(
                "No resource matches tank reference id=%s/%s name=%s",
                current_tank_id,
                tank_id,
                tank_name,
            )
        return None

import logging

from flask import Blueprint, current_app, request

from ...extensions import limiter
from ...services.production_timeline import (
    ProductionTimelineService,
    TimelineSettings,
    TimelineSnapshot,
)
from ...utils.api_responses import APIResponse, api_route

logger = logging.getLogger(__name__)

production_timeline_api_bp = Blueprint('production_timeline_api', __name__)


def _read_snapshot():
    """Parse the posted snapshot and the optional reference time"""
    data = APIResponse.handle_request_content()
    if not isinstance(data, dict) or not data:
        raise ValueError('Request body must be a JSON snapshot object')

    max_batches = current_app.config.get('TIMELINE_MAX_BATCHES', 5000)
    batches = data.get('batches') or []
    if isinstance(batches, list) and len(batches) > max_batches:
        raise ValueError(f'Snapshot exceeds the limit of {max_batches} batches')

    snapshot = TimelineSnapshot.from_payload(data)
    now = request.args.get('now') or data.get('now')
    return snapshot, now


@production_timeline_api_bp.route('/production/timeline', methods=['POST'])
@limiter.limit("600/minute")
@api_route
def production_timeline():
    """Reconcile a snapshot into occupancy events and phase counts"""
    snapshot, now = _read_snapshot()
    settings = TimelineSettings.from_config(current_app.config)
    result = ProductionTimelineService.reconcile(snapshot, now=now, settings=settings)
    return APIResponse.success(result.to_dict(), message=f"{len(result.events)} events")


@production_timeline_api_bp.route('/production/phase-counts', methods=['POST'])
@limiter.limit("600/minute")
@api_route
def production_phase_counts():
    """Lot-based dashboard counts for a snapshot"""
    snapshot, _ = _read_snapshot()
    counts = ProductionTimelineService.aggregate_phase_counts(snapshot)
    return APIResponse.success(counts.to_dict())


@production_timeline_api_bp.route('/production/timeline/summary', methods=['POST'])
@limiter.limit("600/minute")
@api_route
def production_timeline_summary():
    """Per-resource occupancy summary for a snapshot"""
    snapshot, now = _read_snapshot()
    window_days = request.args.get('window_days', type=int) or 30
    settings = TimelineSettings.from_config(current_app.config)
    rows = ProductionTimelineService.summarize_occupancy(
        snapshot, now=now, settings=settings, window_days=window_days
    )
    logger.debug("Summarized %s resources", len(rows))
    return APIResponse.success([row.to_dict() for row in rows])

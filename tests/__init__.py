"""
CellarTrack Test Suite

Tests are organized by domain:
- test_production_timeline_dates.py: Calendar-day anchoring and end-date chains
- test_production_timeline_resources.py: Resource lookup and lanes
- test_production_timeline_blends.py / _splits.py: Blend and split grouping
- test_production_timeline_events.py: Occupancy event synthesis
- test_production_timeline_phase_counts.py: Dashboard counts
- test_production_timeline_properties.py: Idempotence, conservation, no duplicates
- test_production_timeline_routes.py: HTTP API and CLI
"""

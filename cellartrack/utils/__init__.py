from .api_responses import APIResponse, api_route
from .datetime_helpers import ensure_timezone_aware, parse_timestamp, utc_now

__all__ = [
    "APIResponse",
    "api_route",
    "ensure_timezone_aware",
    "parse_timestamp",
    "utc_now",
]

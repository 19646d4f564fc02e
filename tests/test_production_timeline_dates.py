from datetime import date, datetime, timezone

from cellartrack.services.production_timeline import DateResolver, TimelineSettings
from cellartrack.services.production_timeline._dates import EndRequest

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


def _noon(year, month, day):
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


def _resolver(now=NOW, **settings):
    return DateResolver(TimelineSettings(**settings), now)


def test_today_is_anchored_at_reference_hour():
    assert _resolver().today == _noon(2026, 3, 10)


def test_calendar_day_accepts_dates_strings_and_datetimes():
    resolver = _resolver()
    assert resolver.to_calendar_day("2026-03-01") == _noon(2026, 3, 1)
    assert resolver.to_calendar_day(date(2026, 3, 2)) == _noon(2026, 3, 2)
    assert resolver.to_calendar_day(datetime(2026, 3, 3, 23, 30)) == _noon(2026, 3, 3)
    assert resolver.to_calendar_day("2026-03-04T08:15:00Z") == _noon(2026, 3, 4)


def test_unparseable_values_resolve_to_none():
    resolver = _resolver()
    assert resolver.to_calendar_day("next tuesday") is None
    assert resolver.to_calendar_day("") is None
    assert resolver.to_calendar_day(None) is None
    assert resolver.to_calendar_day(12345) is None


def test_timestamps_convert_to_local_calendar_day():
    resolver = _resolver(timezone="America/Denver")
    # 03:00 UTC on the 2nd is still the evening of the 1st in Denver (UTC-7).
    anchored = resolver.to_calendar_day("2026-03-02T03:00:00Z")
    assert anchored == datetime(2026, 3, 1, 19, 0, tzinfo=timezone.utc)


def test_date_only_strings_are_not_shifted_by_timezone():
    resolver = _resolver(timezone="Pacific/Auckland")
    anchored = resolver.to_calendar_day("2026-03-05")
    assert anchored.date() == date(2026, 3, 5)
    assert anchored.hour == 12


def test_start_walks_fallback_chain_to_today():
    resolver = _resolver()
    assert resolver.resolve_start(None, "garbage", "2026-03-02") == _noon(2026, 3, 2)
    assert resolver.resolve_start(None, None) == resolver.today


def test_brew_day_end_is_always_one_day():
    resolver = _resolver()
    start = _noon(2026, 3, 12)
    resolved = resolver.resolve_end(
        EndRequest(phase="PLANNED", start=start, estimated_end="2026-04-30", planned_end="2026-04-30")
    )
    assert resolved.end == _noon(2026, 3, 13)
    assert resolved.is_overdue is False


def test_completed_entity_without_timestamp_ends_today():
    resolver = _resolver()
    resolved = resolver.resolve_end(
        EndRequest(phase="CONDITIONING", start=_noon(2026, 2, 1), entity_completed=True)
    )
    assert resolved.end == resolver.today


def test_completed_assignment_prefers_actual_end_then_next_phase():
    resolver = _resolver()
    start = _noon(2026, 2, 10)
    with_actual = resolver.resolve_end(
        EndRequest(
            phase="FERMENTATION",
            start=start,
            assignment_completed=True,
            actual_end="2026-02-20T18:00:00Z",
            next_phase_start="2026-02-22",
            planned_end="2026-02-24",
        )
    )
    assert with_actual.end == _noon(2026, 2, 20)

    without_actual = resolver.resolve_end(
        EndRequest(
            phase="FERMENTATION",
            start=start,
            assignment_completed=True,
            next_phase_start="2026-02-22",
            planned_end="2026-02-24",
        )
    )
    assert without_actual.end == _noon(2026, 2, 22)


def test_default_duration_and_overdue_extension():
    resolver = _resolver()
    upcoming = resolver.resolve_end(EndRequest(phase="FERMENTING", start=_noon(2026, 3, 8)))
    assert upcoming.end == _noon(2026, 3, 22)
    assert upcoming.is_overdue is False

    stale = resolver.resolve_end(EndRequest(phase="CONDITIONING", start=_noon(2026, 2, 1)))
    assert stale.end == resolver.today
    assert stale.is_overdue is True


def test_end_is_never_before_start():
    resolver = _resolver()
    resolved = resolver.resolve_end(
        EndRequest(phase="PACKAGING", start=_noon(2026, 3, 20), planned_end="2026-03-15")
    )
    assert resolved.end == _noon(2026, 3, 20)


def test_settings_from_config_parse_duration_overrides():
    settings = TimelineSettings.from_config(
        {
            "PRODUCTION_TIMEZONE": "Europe/Berlin",
            "TIMELINE_REFERENCE_HOUR": "9",
            "TIMELINE_DEFAULT_DURATIONS": "fermenting=10, CONDITIONING=5, BRIGHT=x",
        }
    )
    assert settings.timezone == "Europe/Berlin"
    assert settings.reference_hour == 9
    assert settings.duration_days("FERMENTING") == 10
    assert settings.duration_days("conditioning") == 5
    assert settings.duration_days("BRIGHT") == 7
    assert settings.duration_days("UNKNOWN") == 1


def test_settings_reject_out_of_range_reference_hour():
    settings = TimelineSettings.from_config({"TIMELINE_REFERENCE_HOUR": 31})
    assert settings.reference_hour == 12

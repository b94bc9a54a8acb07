"""
Tests for period ranges anchored to a user's zone
"""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from ops_assistant.errors import ParseError
from ops_assistant.ranges import (day_range, is_today, period_range, resolve_period, span_range,
                                  today_range, week_range)

from conftest import NOW, ZONE


@pytest.mark.parametrize("zone", [
    "America/New_York", "America/Los_Angeles", "Europe/London", "Asia/Tokyo",
    "Australia/Sydney", "UTC"
])
def test_week_is_sunday_through_saturday_in_zone(zone):
  week = week_range(zone, NOW)
  tz = ZoneInfo(zone)
  start_local = week.start.astimezone(tz)
  end_local = week.end.astimezone(tz)
  assert start_local.strftime("%A") == "Sunday"
  assert (start_local.hour, start_local.minute) == (0, 0)
  assert end_local.strftime("%A") == "Saturday"
  assert (end_local.hour, end_local.minute, end_local.second) == (23, 59, 59)
  assert week.days == 7
  assert week.label == "this week"


def test_week_across_spring_forward_in_new_york():
  week = week_range(ZONE, NOW)
  assert week.start_date == date(2024, 3, 10)
  assert week.end_date == date(2024, 3, 16)
  assert week.start == datetime(2024, 3, 10, 5, 0, tzinfo=timezone.utc)
  assert week.end == datetime(2024, 3, 17, 3, 59, 59, 999000, tzinfo=timezone.utc)
  assert week.end - week.start == timedelta(days=7, hours=-1, milliseconds=-1)


@pytest.mark.parametrize("civil,zone,jump", [
    (date(2024, 9, 8), "America/Santiago", datetime(2024, 9, 8, 4, 0, tzinfo=timezone.utc)),
    (date(2025, 3, 9), "America/Havana", datetime(2025, 3, 9, 5, 0, tzinfo=timezone.utc)),
])
def test_day_starts_at_transition_when_midnight_is_skipped(civil, zone, jump):
  day = day_range(civil, zone)
  tz = ZoneInfo(zone)
  assert day.start == jump
  start_local = day.start.astimezone(tz)
  assert start_local.date() == civil
  assert (start_local.hour, start_local.minute) == (1, 0)
  end_local = day.end.astimezone(tz)
  assert end_local.date() == civil
  assert (end_local.hour, end_local.minute, end_local.second) == (23, 59, 59)


def test_week_starts_on_sunday_when_midnight_is_skipped():
  week = week_range("America/Santiago", datetime(2024, 9, 10, 15, 0, tzinfo=timezone.utc))
  start_local = week.start.astimezone(ZoneInfo("America/Santiago"))
  assert week.start_date == date(2024, 9, 8)
  assert start_local.date() == date(2024, 9, 8)
  assert start_local.strftime("%A") == "Sunday"
  assert week.start == datetime(2024, 9, 8, 4, 0, tzinfo=timezone.utc)


def test_last_and_next_week_offsets():
  assert period_range("last week", ZONE, NOW).start_date == date(2024, 3, 3)
  assert period_range("next_week", ZONE, NOW).start_date == date(2024, 3, 17)


def test_tomorrow_just_before_local_midnight():
  # 23:57 on the 12th in Los Angeles.
  now = datetime(2024, 3, 13, 6, 57, tzinfo=timezone.utc)
  spec = period_range("tomorrow", "America/Los_Angeles", now)
  assert spec.start_date == date(2024, 3, 13)
  assert spec.start == datetime(2024, 3, 13, 7, 0, tzinfo=timezone.utc)


def test_today_range_bounds():
  spec = today_range(ZONE, NOW)
  assert spec.kind == "day"
  assert spec.start == datetime(2024, 3, 12, 4, 0, tzinfo=timezone.utc)
  assert spec.time_min() == "2024-03-12T04:00:00Z"
  assert is_today(spec, NOW)


def test_month_periods():
  this_month = period_range("this month", ZONE, NOW)
  assert (this_month.start_date, this_month.end_date) == (date(2024, 3, 1), date(2024, 3, 31))
  last_month = period_range("last_month", ZONE, NOW)
  assert (last_month.start_date, last_month.end_date) == (date(2024, 2, 1), date(2024, 2, 29))


def test_year_to_date_ends_now():
  spec = period_range("ytd", ZONE, NOW)
  assert spec.start_date == date(2024, 1, 1)
  assert spec.end == NOW
  assert spec.label == "year to date"


def test_explicit_date_period():
  spec = period_range("2024-03-20", ZONE, NOW)
  assert spec.kind == "explicit_date"
  assert spec.start_date == spec.end_date == date(2024, 3, 20)
  assert not is_today(spec, NOW)


def test_unsupported_period():
  with pytest.raises(ParseError):
    period_range("fortnight", ZONE, NOW)


def test_resolve_period_for_calendar():
  assert resolve_period(None, ZONE, NOW).start_date == date(2024, 3, 12)
  assert resolve_period("tomorrow", ZONE, NOW).label == "tomorrow"
  assert resolve_period("this week", ZONE, NOW).kind == "week"
  assert resolve_period("friday", ZONE, NOW).start_date == date(2024, 3, 15)


def test_span_range_orders_dates():
  spec = span_range(date(2024, 3, 20), date(2024, 3, 18), ZONE)
  assert spec.start_date == date(2024, 3, 18)
  assert spec.days == 3

"""
Tests for civil date/time parsing and zone-anchored instants
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from ops_assistant.errors import ParseError
from ops_assistant.temporal import (CivilTime, civil_to_instant, format_duration, normalize_period,
                                    parse_date, parse_date_time, parse_duration, parse_time,
                                    split_list, today_in_zone)

from conftest import NOW, ZONE


@pytest.mark.parametrize("token,expected", [
    ("2:30pm", (14, 30)),
    ("12am", (0, 0)),
    ("12pm", (12, 0)),
    ("09:05", (9, 5)),
    ("9 am", (9, 0)),
    ("at 4:15 p.m.", (16, 15)),
    ("noon", (12, 0)),
])
def test_parse_time(token, expected):
  assert parse_time(token) == CivilTime(*expected)


@pytest.mark.parametrize("token", ["25:00", "13pm", "half past", ""])
def test_parse_time_rejects_garbage(token):
  with pytest.raises(ParseError):
    parse_time(token)


def test_civil_to_instant_reads_back_in_zone():
  instant = civil_to_instant(date(2024, 7, 4), "Asia/Kolkata", 9, 30)
  assert instant.tzinfo is not None
  local = instant.astimezone(ZoneInfo("Asia/Kolkata"))
  assert (local.date(), local.hour, local.minute) == (date(2024, 7, 4), 9, 30)


@pytest.mark.parametrize("civil,zone", [
    (date(2024, 3, 10), "America/New_York"),  # spring forward
    (date(2024, 11, 3), "America/New_York"),  # fall back
    (date(2024, 3, 31), "Europe/London"),
    (date(2024, 10, 27), "Europe/Berlin"),
])
def test_civil_to_instant_on_transition_days(civil, zone):
  tz = ZoneInfo(zone)
  start = civil_to_instant(civil, zone)
  end = civil_to_instant(civil, zone, 23, 59, 59, 999000)
  assert start.astimezone(tz).replace(tzinfo=None) == datetime(civil.year, civil.month, civil.day)
  assert end.astimezone(tz).replace(tzinfo=None) == datetime(
      civil.year, civil.month, civil.day, 23, 59, 59, 999000)


def test_skipped_wall_time_lands_after_the_jump():
  instant = civil_to_instant(date(2024, 3, 10), "America/New_York", 2, 30)
  assert instant == datetime(2024, 3, 10, 7, 30, tzinfo=timezone.utc)
  local = instant.astimezone(ZoneInfo("America/New_York"))
  assert (local.date(), local.hour, local.minute) == (date(2024, 3, 10), 3, 30)


def test_keywords_follow_the_zone_not_utc():
  # 02:00 UTC on the 13th is still the 12th in Los Angeles.
  now = datetime(2024, 3, 13, 2, 0, tzinfo=timezone.utc)
  assert today_in_zone("America/Los_Angeles", now) == date(2024, 3, 12)
  assert parse_date("today", "America/Los_Angeles", now) == date(2024, 3, 12)
  assert parse_date("tomorrow", "America/Los_Angeles", now) == date(2024, 3, 13)
  assert parse_date("today", "UTC", now) == date(2024, 3, 13)


def test_weekday_on_same_weekday_is_next_week():
  friday = datetime(2024, 3, 15, 15, 0, tzinfo=timezone.utc)
  assert parse_date("friday", ZONE, friday) == date(2024, 3, 22)
  assert parse_date("next friday", ZONE, friday) == date(2024, 3, 22)


def test_weekday_later_in_week():
  assert parse_date("thursday", ZONE, NOW) == date(2024, 3, 14)
  assert parse_date("monday", ZONE, NOW) == date(2024, 3, 18)


@pytest.mark.parametrize("token,expected", [
    ("2024-04-02", date(2024, 4, 2)),
    ("March 20", date(2024, 3, 20)),
    ("march 20th", date(2024, 3, 20)),
    ("20 March", date(2024, 3, 20)),
    ("Jan 5", date(2025, 1, 5)),
    ("Feb 3, 2026", date(2026, 2, 3)),
    ("yesterday", date(2024, 3, 11)),
])
def test_parse_date_formats(token, expected):
  assert parse_date(token, ZONE, NOW) == expected


def test_parse_date_rejects_impossible_iso_date():
  with pytest.raises(ParseError):
    parse_date("2024-02-30", ZONE, NOW)


def test_parse_date_time_combines_in_zone():
  instant = parse_date_time("tomorrow", "2pm", ZONE, NOW)
  assert instant == datetime(2024, 3, 13, 18, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("value,seconds", [
    ("2 hours", 7200),
    ("30m", 1800),
    ("1.5h", 5400),
    ("90 minutes", 5400),
    ("2", 7200),
    ("1h 30m", 5400),
    (2, 7200),
])
def test_parse_duration(value, seconds):
  assert parse_duration(value) == seconds


def test_parse_duration_bare_minutes():
  assert parse_duration(45, bare_unit="minutes") == 2700


@pytest.mark.parametrize("value", [None, "", "soon", "0", -1])
def test_parse_duration_rejects(value):
  with pytest.raises(ParseError):
    parse_duration(value)


def test_format_duration():
  assert format_duration(7500) == "2h 5m"
  assert format_duration(3600) == "1h"
  assert format_duration(900) == "15m"


def test_normalize_period_aliases():
  assert normalize_period("This Week") == "this_week"
  assert normalize_period("ytd") == "year_to_date"
  assert normalize_period("last_month") == "last_month"
  assert normalize_period(None) == ""


def test_split_list():
  assert split_list("a@x.com, b@x.com ,") == ["a@x.com", "b@x.com"]
  assert split_list(["a", " "]) == ["a"]
  assert split_list(None) == []

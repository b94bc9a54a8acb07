"""Natural-language date/time tokens to civil components in a target zone.

All day arithmetic happens on civil ``date`` values. An instant is produced
only at the end, by ``civil_to_instant``, so the server's own zone never leaks
into a result.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, NamedTuple, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from .config import ISO_DATE_RE
from .errors import ParseError
from .utils import normalize_text, utc_now

WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday",
            "saturday")

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_MONTH_DAY_RE = re.compile(
    r"^(?P<month>[a-z]+)\.?\s+(?P<day>\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(?P<year>\d{4}))?$")
_DAY_MONTH_RE = re.compile(
    r"^(?P<day>\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?(?P<month>[a-z]+)\.?(?:,?\s+(?P<year>\d{4}))?$")
_TIME_RE = re.compile(r"^(?:at\s+)?(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)?$")
_DURATION_PART_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(hours?|hrs?|h|minutes?|mins?|m)?(?![a-z])")
_DURATION_FULL_RE = re.compile(
    r"^(?:\s*(?:and\s+)?\d+(?:\.\d+)?\s*(?:hours?|hrs?|h|minutes?|mins?|m)?\s*,?)+$")

_PERIOD_ALIASES = {
    "today": "today",
    "yesterday": "yesterday",
    "tomorrow": "tomorrow",
    "this week": "this_week",
    "week": "this_week",
    "current week": "this_week",
    "last week": "last_week",
    "previous week": "last_week",
    "next week": "next_week",
    "this month": "this_month",
    "month": "this_month",
    "last month": "last_month",
    "this year": "year_to_date",
    "year to date": "year_to_date",
    "year-to-date": "year_to_date",
    "ytd": "year_to_date",
    "last year": "last_year",
}


class CivilTime(NamedTuple):
  hour: int
  minute: int


def zone_info(zone: str) -> ZoneInfo:
  return ZoneInfo(zone)


def _as_aware(now: Optional[datetime]) -> datetime:
  instant = now or utc_now()
  if instant.tzinfo is None:
    instant = instant.replace(tzinfo=timezone.utc)
  return instant


def today_in_zone(zone: str, now: Optional[datetime] = None) -> date:
  return _as_aware(now).astimezone(zone_info(zone)).date()


def now_in_zone(zone: str, now: Optional[datetime] = None) -> datetime:
  return _as_aware(now).astimezone(zone_info(zone))


def weekday_index(value: date) -> int:
  """Day of week with Sunday as 0."""
  return (value.weekday() + 1) % 7


def civil_to_instant(civil: date,
                     zone: str,
                     hour: int = 0,
                     minute: int = 0,
                     second: int = 0,
                     microsecond: int = 0) -> datetime:
  """Return the UTC instant whose wall clock in ``zone`` reads the given civil time.

  Start from the civil value read as UTC, then shift by the difference between
  the zone's wall clock at the candidate and the wanted wall clock. One repeat
  settles the case where the first shift crosses an offset change.

  A wall time skipped by a forward transition is read with the offset in force
  before the jump, which lands just after it on the same civil day. A skipped
  midnight (Santiago, Havana) therefore maps to the transition instant.
  """
  tz = zone_info(zone)
  target = datetime(civil.year, civil.month, civil.day, hour, minute, second,
                    microsecond)
  candidate = target.replace(tzinfo=timezone.utc)
  shifted: List[datetime] = []
  for _ in range(2):
    delta = candidate.astimezone(tz).replace(tzinfo=None) - target
    if not delta:
      return candidate
    candidate -= delta
    shifted.append(candidate)
  if candidate.astimezone(tz).replace(tzinfo=None) == target:
    return candidate
  return max(shifted)


def _next_weekday(today: date, name: str) -> date:
  target = WEEKDAYS.index(name)
  days_ahead = (target - weekday_index(today)) % 7 or 7
  return today + timedelta(days=days_ahead)


def _build_date(year: int, month: int, day: int, token: str) -> date:
  try:
    return date(year, month, day)
  except ValueError as exc:
    raise ParseError(f"Cannot parse date: {token}") from exc


def _parse_month_day(text: str, today: date) -> Optional[date]:
  match = _MONTH_DAY_RE.match(text) or _DAY_MONTH_RE.match(text)
  if not match:
    return None
  month = _MONTHS.get(match.group("month"))
  if month is None:
    return None
  day = int(match.group("day"))
  if match.group("year"):
    return _build_date(int(match.group("year")), month, day, text)
  # Without a year, take the next occurrence on or after today.
  for year in range(today.year, today.year + 5):
    try:
      candidate = date(year, month, day)
    except ValueError:
      continue
    if candidate >= today:
      return candidate
  raise ParseError(f"Cannot parse date: {text}")


def parse_date(token: Any, zone: str, now: Optional[datetime] = None) -> date:
  if isinstance(token, datetime):
    return token.astimezone(zone_info(zone)).date() if token.tzinfo else token.date()
  if isinstance(token, date):
    return token
  text = normalize_text(str(token or "")).lower().rstrip(".!?")
  if not text:
    raise ParseError("I need a date.")
  today = today_in_zone(zone, now)

  if text == "today":
    return today
  if text == "tomorrow":
    return today + timedelta(days=1)
  if text == "yesterday":
    return today - timedelta(days=1)
  if text == "next week":
    return today + timedelta(days=7)

  weekday = text
  for prefix in ("next ", "this ", "on "):
    if weekday.startswith(prefix):
      weekday = weekday[len(prefix):]
  if weekday in WEEKDAYS:
    return _next_weekday(today, weekday)

  natural = _parse_month_day(text, today)
  if natural is not None:
    return natural

  if ISO_DATE_RE.match(text):
    year, month, day = (int(p) for p in text.split("-"))
    return _build_date(year, month, day, text)

  default = datetime(today.year, today.month, today.day)
  try:
    parsed = date_parser.parse(text, default=default)
  except (ValueError, OverflowError) as exc:
    raise ParseError(f"Cannot parse date: {token}") from exc
  if parsed.tzinfo is not None:
    return parsed.astimezone(zone_info(zone)).date()
  return parsed.date()


def parse_time(token: Any) -> CivilTime:
  text = normalize_text(str(token or "")).lower()
  if text == "noon":
    return CivilTime(12, 0)
  if text == "midnight":
    return CivilTime(0, 0)
  match = _TIME_RE.match(text)
  if not match:
    raise ParseError(f"Cannot parse time: {token}")
  hour = int(match.group(1))
  minute = int(match.group(2) or 0)
  meridiem = (match.group(3) or "").replace(".", "")
  if meridiem:
    if not 1 <= hour <= 12:
      raise ParseError(f"Cannot parse time: {token}")
    if meridiem == "pm" and hour != 12:
      hour += 12
    elif meridiem == "am" and hour == 12:
      hour = 0
  if not (0 <= hour <= 23 and 0 <= minute <= 59):
    raise ParseError(f"Cannot parse time: {token}")
  return CivilTime(hour, minute)


def combine(civil: date, time_of_day: CivilTime, zone: str) -> datetime:
  return civil_to_instant(civil, zone, time_of_day.hour, time_of_day.minute)


def parse_date_time(date_token: Any,
                    time_token: Any,
                    zone: str,
                    now: Optional[datetime] = None) -> datetime:
  return combine(parse_date(date_token, zone, now), parse_time(time_token), zone)


def parse_duration(value: Union[str, int, float, None],
                   bare_unit: str = "hours") -> int:
  """Duration text to seconds. A bare number is read in ``bare_unit``."""
  bare_seconds = 3600 if bare_unit == "hours" else 60
  if isinstance(value, bool) or value is None:
    raise ParseError("I need a duration, e.g. \"2 hours\" or \"30m\".")
  if isinstance(value, (int, float)):
    seconds = int(round(float(value) * bare_seconds))
  else:
    text = normalize_text(value).lower()
    if not text or not _DURATION_FULL_RE.match(text):
      raise ParseError(f"Cannot parse duration: {value}")
    seconds = 0
    for amount, unit in _DURATION_PART_RE.findall(text):
      if not unit:
        scale = bare_seconds
      elif unit.startswith("h"):
        scale = 3600
      else:
        scale = 60
      seconds += int(round(float(amount) * scale))
  if seconds <= 0:
    raise ParseError(f"Cannot parse duration: {value}")
  return seconds


def format_duration(seconds: int) -> str:
  hours, rest = divmod(max(int(seconds), 0), 3600)
  minutes = rest // 60
  if hours == 0:
    return f"{minutes}m"
  if minutes == 0:
    return f"{hours}h"
  return f"{hours}h {minutes}m"


def normalize_period(value: Any) -> str:
  text = normalize_text(str(value or "")).lower()
  if not text:
    return ""
  if text in _PERIOD_ALIASES:
    return _PERIOD_ALIASES[text]
  snake = text.replace(" ", "_")
  if snake in _PERIOD_ALIASES.values():
    return snake
  return text


def split_list(value: Any) -> List[str]:
  if isinstance(value, (list, tuple)):
    items = [str(v) for v in value]
  elif isinstance(value, str):
    items = value.split(",")
  else:
    return []
  return [item.strip() for item in items if item and item.strip()]


def day_bounds(civil: date, zone: str) -> Tuple[datetime, datetime]:
  return (civil_to_instant(civil, zone),
          civil_to_instant(civil, zone, 23, 59, 59, 999000))

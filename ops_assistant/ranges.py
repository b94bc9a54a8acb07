"""Civil periods in a zone turned into UTC instant ranges (``PeriodSpec``)."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional

from .errors import ParseError
from .models import PeriodKind, PeriodSpec
from .temporal import (
    civil_to_instant,
    day_bounds,
    normalize_period,
    now_in_zone,
    parse_date,
    today_in_zone,
    weekday_index,
)
from .utils import format_day

_END_OF_DAY = (23, 59, 59, 999000)


def span_range(start_date: date,
               end_date: date,
               zone: str,
               kind: PeriodKind = "span",
               label: str = "") -> PeriodSpec:
  if end_date < start_date:
    start_date, end_date = end_date, start_date
  return PeriodSpec(
      kind=kind,
      start_date=start_date,
      end_date=end_date,
      timezone=zone,
      start=civil_to_instant(start_date, zone),
      end=civil_to_instant(end_date, zone, *_END_OF_DAY),
      label=label,
  )


def day_range(civil: date,
              zone: str,
              kind: PeriodKind = "day",
              label: str = "") -> PeriodSpec:
  start, end = day_bounds(civil, zone)
  return PeriodSpec(kind=kind,
                    start_date=civil,
                    end_date=civil,
                    timezone=zone,
                    start=start,
                    end=end,
                    label=label or format_day(civil))


def today_range(zone: str, now: Optional[datetime] = None) -> PeriodSpec:
  return day_range(parse_date("today", zone, now), zone, label="today")


def tomorrow_range(zone: str, now: Optional[datetime] = None) -> PeriodSpec:
  return day_range(parse_date("tomorrow", zone, now), zone, label="tomorrow")


def week_range(zone: str,
               now: Optional[datetime] = None,
               offset_weeks: int = 0) -> PeriodSpec:
  """Sunday 00:00:00.000 through Saturday 23:59:59.999 of the current week."""
  today = today_in_zone(zone, now)
  sunday = today - timedelta(days=weekday_index(today)) + timedelta(weeks=offset_weeks)
  label = {0: "this week", -1: "last week", 1: "next week"}.get(offset_weeks, "")
  return span_range(sunday, sunday + timedelta(days=6), zone, kind="week", label=label)


def explicit_date_range(token: Any,
                        zone: str,
                        now: Optional[datetime] = None) -> PeriodSpec:
  return day_range(parse_date(token, zone, now), zone, kind="explicit_date")


def _month_start(value: date) -> date:
  return value.replace(day=1)


def _next_month_start(value: date) -> date:
  if value.month == 12:
    return date(value.year + 1, 1, 1)
  return date(value.year, value.month + 1, 1)


def period_range(period: Any,
                 zone: str,
                 now: Optional[datetime] = None) -> PeriodSpec:
  """Named reporting periods (today, this_week, last_month, year_to_date, ...)."""
  name = normalize_period(period) or "today"
  today = today_in_zone(zone, now)

  if name == "today":
    return today_range(zone, now)
  if name == "yesterday":
    return day_range(today - timedelta(days=1), zone, label="yesterday")
  if name == "tomorrow":
    return tomorrow_range(zone, now)
  if name == "this_week":
    return week_range(zone, now)
  if name == "last_week":
    return week_range(zone, now, offset_weeks=-1)
  if name == "next_week":
    return week_range(zone, now, offset_weeks=1)
  if name == "this_month":
    first = _month_start(today)
    return span_range(first, _next_month_start(today) - timedelta(days=1), zone,
                      label="this month")
  if name == "last_month":
    last_day = _month_start(today) - timedelta(days=1)
    return span_range(_month_start(last_day), last_day, zone, label="last month")
  if name == "last_year":
    return span_range(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31), zone,
                      label="last year")
  if name == "year_to_date":
    first = date(today.year, 1, 1)
    start = civil_to_instant(first, zone)
    end = max(now_in_zone(zone, now), start + timedelta(milliseconds=1))
    return PeriodSpec(kind="span",
                      start_date=first,
                      end_date=today,
                      timezone=zone,
                      start=start,
                      end=end.astimezone(start.tzinfo),
                      label="year to date")
  try:
    return explicit_date_range(period, zone, now)
  except ParseError as exc:
    raise ParseError(f"Unsupported period: {period}") from exc


def resolve_period(token: Any,
                   zone: str,
                   now: Optional[datetime] = None) -> PeriodSpec:
  """Calendar-style periods: a day keyword, a week keyword, or an explicit date."""
  text = normalize_period(token)
  if not text or text == "today":
    return today_range(zone, now)
  if text == "tomorrow":
    return tomorrow_range(zone, now)
  if text in ("this_week", "last_week", "next_week"):
    return period_range(text, zone, now)
  return explicit_date_range(token, zone, now)


def is_today(period: PeriodSpec, now: Optional[datetime] = None) -> bool:
  return (period.start_date == period.end_date
          and period.start_date == today_in_zone(period.timezone, now))

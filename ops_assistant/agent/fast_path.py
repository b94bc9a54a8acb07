"""Requests answered without the classifier.

Current time and date questions are answered directly in the user's zone; a
few unambiguous commands map straight to an intent.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import NamedTuple, Optional

from ..temporal import now_in_zone
from ..utils import format_clock, format_day, normalize_text
from .schemas import ClassifiedIntent

_TIME_RE = re.compile(r"^(?:what(?:'s| is) the )?(?:current )?time(?: is it)?(?: now| right now)?\??$"
                      r"|^what time is it(?: now| right now)?\??$")
_DATE_RE = re.compile(r"^(?:what(?:'s| is) )?(?:the date|today'?s date)(?: today)?\??$"
                      r"|^what day is (?:it|today)\??$")
_PROJECTS_RE = re.compile(r"^(?:list|show|what)(?: me)?(?: are)?(?: all)?(?: my| the| our)?"
                          r"(?: asana)? projects(?: are there| do (?:i|we) have)?\??$")
_SCHEDULE_RE = re.compile(r'^schedule\s+["“]([^"”]+)["”]\s+(\d+)\s*(?:m|mins?|minutes?)?$',
                          re.IGNORECASE)


class FastPath(NamedTuple):
  reply: Optional[str] = None
  intent: Optional[ClassifiedIntent] = None


def time_reply(zone: str, now: Optional[datetime] = None) -> str:
  local = now_in_zone(zone, now)
  return f"It's {format_clock(local)} ({zone}) on {format_day(local.date())}."


def date_reply(zone: str, now: Optional[datetime] = None) -> str:
  local = now_in_zone(zone, now)
  return f"Today is {format_day(local.date(), with_year=True)}."


def parse_schedule_command(text: str) -> Optional[ClassifiedIntent]:
  match = _SCHEDULE_RE.match(normalize_text(text))
  if not match:
    return None
  return ClassifiedIntent(name="schedule_oneoff",
                          slots={"title": match.group(1).strip(), "minutes": int(match.group(2))})


def match_fast_path(text: str, zone: str, now: Optional[datetime] = None) -> Optional[FastPath]:
  cleaned = normalize_text(text).lower().rstrip(".!")
  if not cleaned:
    return None
  if _TIME_RE.match(cleaned):
    return FastPath(reply=time_reply(zone, now))
  if _DATE_RE.match(cleaned):
    return FastPath(reply=date_reply(zone, now))
  if _PROJECTS_RE.match(cleaned):
    return FastPath(intent=ClassifiedIntent(name="list_projects"))
  scheduled = parse_schedule_command(text)
  if scheduled is not None:
    return FastPath(intent=scheduled)
  return None

"""Period rundown: calendar and task fetches merged into one summary.

The four source fetches run concurrently and each one is isolated: a failed or
timed-out source is recorded and the rundown is rendered from the rest.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..asana import AsanaClient
from ..config import PROVIDER_TIMEOUT_SECONDS
from ..errors import classify_error
from ..gcal import GoogleCalendarClient
from ..models import NormalizedEvent, NormalizedTask, PeriodSpec, ProjectRollupEntry
from ..ranges import is_today
from ..temporal import today_in_zone
from ..utils import bullet_list, format_day, utc_now
from .formatting import format_event, format_task, format_time_until

logger = logging.getLogger(__name__)

NO_PROJECT = "No project"

HEAVY_SCHEDULE_MEETINGS = 4
MAJOR_BACKLOG_OVERDUE = 15
BATCH_PROJECTS = 4


class RundownResult(BaseModel):
  period: PeriodSpec
  events: List[NormalizedEvent] = Field(default_factory=list)
  overdue_tasks: List[NormalizedTask] = Field(default_factory=list)
  period_tasks: List[NormalizedTask] = Field(default_factory=list)
  tasks: List[NormalizedTask] = Field(default_factory=list)
  rollup: List[ProjectRollupEntry] = Field(default_factory=list)
  next_meeting: Optional[NormalizedEvent] = None
  insights: List[str] = Field(default_factory=list)
  failures: Dict[str, str] = Field(default_factory=dict)


def dedupe_tasks(tasks: Iterable[NormalizedTask]) -> List[NormalizedTask]:
  """Drop repeated ids, keeping the first occurrence."""
  seen = set()
  unique: List[NormalizedTask] = []
  for task in tasks:
    if task.id in seen:
      continue
    seen.add(task.id)
    unique.append(task)
  return unique


def build_rollup(tasks: Iterable[NormalizedTask],
                 today: date,
                 period: Optional[PeriodSpec] = None) -> List[ProjectRollupEntry]:
  """Group tasks by primary project, busiest and most overdue first.

  Ordering is by overdue count, then total count, both descending; ties keep
  the order in which projects first appear.
  """
  entries: Dict[str, ProjectRollupEntry] = {}
  for task in tasks:
    project = task.primary_project
    key = (project.id or project.name) if project else NO_PROJECT
    entry = entries.get(key)
    if entry is None:
      entry = ProjectRollupEntry(project_name=project.name if project else NO_PROJECT,
                                 project_id=project.id if project else None)
      entries[key] = entry
    entry.all_tasks.append(task)
    if task.due_date is not None and task.due_date < today:
      entry.overdue_tasks.append(task)
    elif task.due_date is not None and (period is None or period.contains_date(task.due_date)):
      entry.period_tasks.append(task)
  return sorted(entries.values(), key=lambda e: (-len(e.overdue_tasks), -len(e.all_tasks)))


def build_insights(meeting_count: int, overdue_count: int, project_count: int) -> List[str]:
  insights: List[str] = []
  if meeting_count >= HEAVY_SCHEDULE_MEETINGS:
    insights.append(f"Heavy schedule with {meeting_count} meetings, so protect some focus time "
                    "between calls.")
  if overdue_count > MAJOR_BACKLOG_OVERDUE:
    insights.append(f"Major backlog of {overdue_count} overdue tasks. Pick the few that matter "
                    "most and reschedule the rest.")
  if project_count > BATCH_PROJECTS:
    insights.append(f"Work is spread across {project_count} projects. Batch tasks by project to "
                    "cut down on context switching.")
  return insights


class RundownAggregator:

  def __init__(self,
               calendar: Optional[GoogleCalendarClient],
               tasks: Optional[AsanaClient],
               timeout: float = PROVIDER_TIMEOUT_SECONDS) -> None:
    self.calendar = calendar
    self.tasks = tasks
    self.timeout = timeout

  async def _guarded(self,
                     source: str,
                     service: str,
                     fn: Optional[Callable[..., Any]],
                     *args: Any) -> Tuple[Any, Optional[str]]:
    if fn is None:
      return None, f"{service} isn't configured"
    try:
      value = await asyncio.wait_for(asyncio.to_thread(fn, *args), self.timeout)
    except asyncio.CancelledError:
      raise
    except Exception as exc:
      err = classify_error(exc, service)
      logger.warning("Rundown source %s failed (%s): %s", source, err.kind, err.message)
      return None, f"couldn't reach {service} ({err.kind.replace('_', ' ')})"
    return value, None

  async def build(self, period: PeriodSpec, now: Optional[datetime] = None) -> RundownResult:
    instant = now or utc_now()
    today = today_in_zone(period.timezone, instant)
    calendar, tasks = self.calendar, self.tasks
    want_next = period.kind == "day" and is_today(period, instant)

    async def _no_next() -> Tuple[Any, Optional[str]]:
      return None, None

    (events, events_err), (period_tasks, period_err), (overdue, overdue_err), (nxt, next_err) = (
        await asyncio.gather(
            self._guarded("events", "Google Calendar",
                          calendar.get_events if calendar else None, period.start, period.end, 100),
            self._guarded("period_tasks", "Asana",
                          tasks.tasks_due_between if tasks else None,
                          period.start_date, period.end_date),
            self._guarded("overdue_tasks", "Asana",
                          tasks.overdue_tasks if tasks else None, today),
            self._guarded("next_meeting", "Google Calendar",
                          calendar.next_event if calendar else None, instant, period.end)
            if want_next else _no_next(),
        ))

    failures: Dict[str, str] = {}
    for source, err in (("events", events_err), ("period_tasks", period_err),
                        ("overdue_tasks", overdue_err), ("next_meeting", next_err)):
      if err:
        failures[source] = err

    events = list(events or [])
    overdue = [t for t in (overdue or []) if t.due_date is not None and t.due_date < today]
    period_tasks = list(period_tasks or [])
    merged = dedupe_tasks(overdue + period_tasks)
    overdue_ids = {t.id for t in overdue}
    overdue = [t for t in merged if t.id in overdue_ids]
    rollup = build_rollup(merged, today, period)

    return RundownResult(
        period=period,
        events=events,
        overdue_tasks=overdue,
        period_tasks=[t for t in merged if t.id not in overdue_ids],
        tasks=merged,
        rollup=rollup,
        next_meeting=nxt,
        insights=build_insights(len([e for e in events if not e.all_day]), len(overdue),
                                len(rollup)),
        failures=failures,
    )

  async def build_rundown(self, period: PeriodSpec, now: Optional[datetime] = None) -> str:
    instant = now or utc_now()
    return render_rundown(await self.build(period, instant), instant)


def _period_title(period: PeriodSpec, today: date) -> str:
  if period.start_date == period.end_date:
    prefix = "Today, " if period.start_date == today else ""
    return prefix + format_day(period.start_date)
  return period.label or f"{format_day(period.start_date)} to {format_day(period.end_date)}"


def render_rundown(result: RundownResult, now: datetime) -> str:
  period = result.period
  zone = period.timezone
  today = today_in_zone(zone, now)
  parts = [f"*📋 Rundown for {_period_title(period, today)}*"]

  if "events" not in result.failures:
    if result.events:
      lines = [format_event(e, zone, details=False) for e in result.events]
      parts.append(f"*📅 Meetings ({len(result.events)}):*\n" + bullet_list(lines, 8))
    else:
      parts.append("*📅 Meetings:* Clear calendar ✨")

  if result.next_meeting is not None:
    nxt = result.next_meeting
    text = f"*⏭️ Next up:* {nxt.title} ({format_time_until(nxt.start, now)})"
    if nxt.meeting_url:
      text += f"\n🔗 {nxt.meeting_url}"
    parts.append(text)

  if result.overdue_tasks:
    lines = [format_task(t, today) for t in result.overdue_tasks]
    parts.append(f"*🔴 Overdue ({len(result.overdue_tasks)}):*\n"
                 + bullet_list(lines, 5, "more overdue tasks"))

  if result.period_tasks:
    label = "Due Today" if period.start_date == period.end_date == today else "Due This Period"
    lines = [format_task(t, today) for t in result.period_tasks]
    parts.append(f"*🟡 {label} ({len(result.period_tasks)}):*\n" + bullet_list(lines, 8))

  if result.rollup:
    lines = []
    for entry in result.rollup[:5]:
      summary = f"• *{entry.project_name}*: {len(entry.all_tasks)} task"
      summary += "s" if len(entry.all_tasks) != 1 else ""
      if entry.overdue_tasks:
        summary += f", {len(entry.overdue_tasks)} overdue"
      lines.append(summary)
    parts.append("*🗂️ By project:*\n" + bullet_list(lines))
  elif not ({"period_tasks", "overdue_tasks"} & set(result.failures)):
    parts.append("No urgent tasks! You're all caught up. 🎉")

  if result.insights:
    parts.append("_" + " ".join(result.insights) + "_")

  if result.failures:
    notes = sorted(set(result.failures.values()))
    parts.append("⚠️ _Partial rundown: " + "; ".join(notes) + "._")

  return "\n\n".join(parts)

from __future__ import annotations

import math
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from ..gcal import is_meeting_link
from ..models import NormalizedEvent, NormalizedTask
from ..temporal import zone_info
from ..utils import bullet_list, format_clock, format_day

URGENCY_SECTIONS = (
    ("overdue", "*🔴 Overdue:*", None),
    ("today", "*🟡 Due Today:*", None),
    ("this_week", "*📅 This Week:*", None),
    ("later", "*📋 Later:*", 5),
    ("no_due_date", "*📝 No Due Date:*", 3),
)


def event_time_label(event: NormalizedEvent, zone: str) -> str:
  if event.all_day:
    return "All day"
  tz = zone_info(zone)
  start = format_clock(event.start.astimezone(tz))
  if event.end is None:
    return start
  return f"{start} - {format_clock(event.end.astimezone(tz))}"


def format_event(event: NormalizedEvent, zone: str, details: bool = True) -> str:
  text = f"• *{event.title}* ({event_time_label(event, zone)})"
  if not details:
    return text
  if event.attendee_names:
    extra = " +others" if len(event.attendee_names) > 3 else ""
    text += f"\n  _with {', '.join(event.attendee_names[:3])}{extra}_"
  if event.meeting_url:
    text += f"\n  🔗 {event.meeting_url}"
  if event.location and not is_meeting_link(event.location):
    text += f"\n  📍 {event.location}"
  return text


def group_events_by_day(events: Iterable[NormalizedEvent], zone: str) -> "OrderedDict[date, List[NormalizedEvent]]":
  tz = zone_info(zone)
  grouped: "OrderedDict[date, List[NormalizedEvent]]" = OrderedDict()
  for event in events:
    day = event.start.date() if event.all_day else event.start.astimezone(tz).date()
    grouped.setdefault(day, []).append(event)
  return grouped


def format_task(task: NormalizedTask, today: date, include_project: bool = True) -> str:
  text = f"• *{task.title}*"
  if task.due_date:
    if task.due_date == today:
      text += " 🟡 (due today)"
    elif task.due_date < today:
      text += " 🔴 (overdue)"
    else:
      text += f" (due {task.due_date.strftime('%b')} {task.due_date.day})"
  project = task.primary_project
  if include_project and project:
    text += f" _[{project.name}]_"
  return text


def group_tasks_by_urgency(tasks: Iterable[NormalizedTask], today: date) -> Dict[str, List[NormalizedTask]]:
  groups: Dict[str, List[NormalizedTask]] = {key: [] for key, _, _ in URGENCY_SECTIONS}
  for task in tasks:
    if task.due_date is None:
      groups["no_due_date"].append(task)
      continue
    days = (task.due_date - today).days
    if days < 0:
      groups["overdue"].append(task)
    elif days == 0:
      groups["today"].append(task)
    elif days <= 7:
      groups["this_week"].append(task)
    else:
      groups["later"].append(task)
  return groups


def render_task_groups(title: str, tasks: List[NormalizedTask], today: date) -> str:
  if not tasks:
    return f"{title}\nNo tasks found! 🎉"
  groups = group_tasks_by_urgency(tasks, today)
  parts = [title]
  for key, heading, limit in URGENCY_SECTIONS:
    items = groups[key]
    if items:
      parts.append(heading + "\n" + bullet_list((format_task(t, today) for t in items), limit))
  return "\n\n".join(parts)


def format_time_until(start: datetime, now: datetime) -> str:
  minutes = math.floor((start - now) / timedelta(minutes=1))
  if minutes < 0:
    return f"Started {abs(minutes)} minutes ago"
  if minutes == 0:
    return "Starting now"
  if minutes < 60:
    return f"In {minutes} minutes"
  hours, rest = divmod(minutes, 60)
  if rest == 0:
    return f"In {hours} hour{'s' if hours > 1 else ''}"
  return f"In {hours}h {rest}m"


def date_heading(value: date, today: Optional[date] = None) -> str:
  if today is not None and value == today:
    return "Today"
  if today is not None and value == today + timedelta(days=1):
    return "Tomorrow"
  return format_day(value)

"""Google Calendar intents: look up, create, block, update and delete events."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from ...errors import ValidationError
from ...gcal import is_meeting_link
from ...models import NormalizedEvent, PeriodSpec
from ...ranges import resolve_period, today_range
from ...temporal import (combine, parse_date, parse_duration, parse_time, split_list,
                         today_in_zone, zone_info)
from ...utils import format_clock, format_day
from ..context import HandlerContext
from ..formatting import date_heading, event_time_label, format_event, format_time_until, group_events_by_day
from ..schemas import (BlockTimeSlots, CheckCalendarSlots, CreateMeetingSlots, DeleteMeetingSlots,
                       NextMeetingSlots, UpdateMeetingSlots)
from .common import ask_for_missing, call

logger = logging.getLogger(__name__)

DEFAULT_MEETING_MINUTES = 60

_UPDATABLE_FIELDS = {
    "title": "summary",
    "summary": "summary",
    "name": "summary",
    "location": "location",
    "description": "description",
    "notes": "description",
    "attendees": "attendees",
}


def _calendar_title(period: PeriodSpec, today: date) -> str:
  if period.kind == "week":
    return f"*{period.label.capitalize() or 'This week'}'s meetings:*"
  if period.start_date == today:
    return "*Today's meetings:*"
  if period.start_date == today + timedelta(days=1):
    return f"*Tomorrow's meetings ({format_day(period.start_date)}):*"
  return f"*Meetings on {format_day(period.start_date)}:*"


def _free_message(period: PeriodSpec, today: date) -> str:
  if period.kind == "week":
    return "Light week ahead! Good time to plan your next moves."
  if period.start_date == today:
    return "Your calendar is clear today! Time to tackle that task list."
  if period.start_date == today + timedelta(days=1):
    return "Nothing on the books tomorrow. Perfect day for deep work."
  return "No meetings scheduled. Lucky you."


async def check_calendar(ctx: HandlerContext, slots: CheckCalendarSlots) -> None:
  calendar = ctx.require("calendar")
  zone = ctx.timezone
  period = resolve_period(slots.date or slots.period or "today", zone, ctx.now)
  today = today_in_zone(zone, ctx.now)
  events = await call(calendar.get_events, period.start, period.end, 100)
  title = _calendar_title(period, today)

  if not events:
    await ctx.reply(f"{title}\n{_free_message(period, today)} ✨")
    return

  if period.kind == "week":
    sections = []
    for day, day_events in group_events_by_day(events, zone).items():
      lines = "\n".join(format_event(e, zone) for e in day_events)
      sections.append(f"*{date_heading(day, today)}:*\n{lines}")
    body = "\n\n".join(sections)
  else:
    body = "\n\n".join(format_event(e, zone) for e in events)

  text = f"{title}\n\n{body}"
  if any(e.meeting_url for e in events):
    text += "\n\n_Need help prepping for any of these? Just ask._"
  ctx.remember(last_action="checked_calendar")
  await ctx.reply(text)


def _first_upcoming(events: List[NormalizedEvent], now: datetime) -> Optional[NormalizedEvent]:
  for event in events:
    if event.all_day:
      continue
    if event.end is not None and event.end <= now:
      continue
    return event
  return None


async def next_meeting(ctx: HandlerContext, slots: NextMeetingSlots) -> None:
  calendar = ctx.require("calendar")
  today = today_range(ctx.timezone, ctx.now)
  events = await call(calendar.get_events, ctx.now, today.end, 5)
  event = _first_upcoming(events, ctx.now)
  if event is None:
    await ctx.reply("No more meetings today. Time to focus on what matters.")
    return

  lines = [f"*Next up:* {event.title}",
           f"🕐 {format_time_until(event.start, ctx.now)} ({event_time_label(event, ctx.timezone)})"]
  if event.meeting_url:
    lines.append(f"🔗 {event.meeting_url}")
  if event.attendee_names:
    lines.append(f"👥 {', '.join(event.attendee_names[:3])}")

  minutes = int((event.start - ctx.now) / timedelta(minutes=1))
  if 0 <= minutes <= 15:
    lines.append("\n_Better wrap up what you're doing. Meeting starts soon._")
  elif 15 < minutes <= 30:
    lines.append("\n_Good time to review your notes and prep._")
  ctx.remember(last_action="checked_next_meeting", last_event_id=event.id)
  await ctx.reply("\n".join(lines))


def _duration_minutes(value: Any) -> int:
  if value is None:
    return DEFAULT_MEETING_MINUTES
  return parse_duration(value, bare_unit="minutes") // 60


def _when(start: datetime, end: Optional[datetime], zone: str) -> str:
  tz = zone_info(zone)
  local = start.astimezone(tz)
  text = f"📅 {format_day(local.date())} at {format_clock(local)}"
  if end is not None:
    text += f" - {format_clock(end.astimezone(tz))}"
  return text


async def create_meeting(ctx: HandlerContext, slots: CreateMeetingSlots) -> None:
  if await ask_for_missing(ctx, slots, "I need at least a title, date and start time to create a meeting."):
    return
  calendar = ctx.require("calendar")
  zone = ctx.timezone
  day = parse_date(slots.date, zone, ctx.now)
  start = combine(day, parse_time(slots.start_time), zone)
  end = start + timedelta(minutes=_duration_minutes(slots.duration))
  attendees = split_list(slots.attendees)
  can_invite = calendar.supports_attendees

  event = await call(calendar.create_event,
                     slots.title,
                     start,
                     end,
                     zone,
                     description=slots.description or "",
                     location=slots.location or "",
                     attendees=attendees if can_invite else [],
                     meeting_type=slots.meeting_type)
  ctx.remember(last_action="created_meeting", last_event_id=event.id)

  lines = [f"✅ Created meeting: *{event.title}*", _when(event.start, None, zone)]
  if attendees and can_invite:
    lines.append(f"👥 Attendees: {', '.join(attendees)}")
  if event.meeting_url:
    lines.append(f"🔗 {event.meeting_url}")
  if slots.location and not is_meeting_link(slots.location):
    lines.append(f"📍 {slots.location}")
  if attendees and not can_invite:
    logger.info("Created event %s without invites; calendar cannot invite attendees", event.id)
    lines.append(f"\n⚠️ I couldn't send invites from this calendar, so nobody was invited. "
                 f"Share the details with {', '.join(attendees)} directly.")
  elif attendees:
    lines.append("\n_Calendar invite sent. You're all set._")
  else:
    lines.append("\n_It's on the calendar. You're all set._")
  await ctx.reply("\n".join(lines))


async def block_time(ctx: HandlerContext, slots: BlockTimeSlots) -> None:
  if await ask_for_missing(ctx, slots, "I need a title, date and start time to block calendar time."):
    return
  calendar = ctx.require("calendar")
  zone = ctx.timezone
  day = parse_date(slots.date, zone, ctx.now)
  start = combine(day, parse_time(slots.start_time), zone)
  if slots.end_time:
    end = combine(day, parse_time(slots.end_time), zone)
    if end <= start:
      raise ValidationError("The end time has to be after the start time.",
                            suggestions=["block time for deep work tomorrow 2pm to 4pm"])
  else:
    end = start + timedelta(minutes=_duration_minutes(slots.duration))

  event = await call(calendar.create_event, slots.title, start, end, zone,
                     description="Time blocked from Slack")
  ctx.remember(last_action="blocked_time", last_event_id=event.id)
  await ctx.reply(f"✅ Time blocked: *{event.title}*\n{_when(event.start, event.end, zone)}\n\n"
                  "_Your calendar is now protected. Focus time secured._")


def _with_last_event(ctx: HandlerContext, slots: Any) -> Any:
  if slots.event_id:
    return slots
  last = ctx.thread_context().get("last_event_id")
  return slots.model_copy(update={"event_id": last}) if last else slots


async def update_meeting(ctx: HandlerContext, slots: UpdateMeetingSlots) -> None:
  slots = _with_last_event(ctx, slots)
  if await ask_for_missing(ctx, slots, "I need an event ID, the field to update and the new value."):
    return
  field = slots.field.strip().lower().replace(" ", "_")
  if field in ("time", "start_time", "date", "start"):
    await ctx.reply("Time updates are easier as delete and recreate. Want me to help with that?")
    return
  target = _UPDATABLE_FIELDS.get(field)
  if target is None:
    await ctx.reply(f"I don't know how to update \"{slots.field}\". "
                    "I can update: title, location, description, or attendees.")
    return

  calendar = ctx.require("calendar")
  body: Dict[str, Any] = {target: slots.value}
  if target == "attendees":
    if not calendar.supports_attendees:
      await ctx.reply("I can't invite attendees from this calendar connection. "
                      "Ask your admin to set up a delegated user.")
      return
    body[target] = [{"email": email} for email in split_list(slots.value)]

  event = await call(calendar.update_event, slots.event_id, body)
  ctx.remember(last_action="updated_meeting", last_event_id=event.id)
  await ctx.reply(f"✅ Updated meeting: *{event.title}*\nChange: {slots.field} → {slots.value}")


async def delete_meeting(ctx: HandlerContext, slots: DeleteMeetingSlots) -> None:
  slots = _with_last_event(ctx, slots)
  if await ask_for_missing(ctx, slots, "I need the event ID to delete a meeting. Which meeting should I cancel?"):
    return
  calendar = ctx.require("calendar")
  await call(calendar.delete_event, slots.event_id)
  ctx.remember(last_action="deleted_meeting", last_event_id=None)
  await ctx.reply("✅ Meeting deleted and attendees notified.\n_That felt satisfying, didn't it?_")

from __future__ import annotations

from collections import OrderedDict
from datetime import timedelta
from typing import Dict, List

from ...models import TimeEntry
from ...ranges import period_range
from ...temporal import (CivilTime, combine, format_duration, parse_date, parse_duration,
                         parse_time, today_in_zone, zone_info)
from ...utils import format_day
from ..context import HandlerContext
from ..schemas import LogTimeSlots, QueryTimeSlots
from .common import call, projects_block, reply_unknown_project

# Past-day entries with only a duration are assumed to end at 5 PM local.
_PAST_DAY_END = CivilTime(17, 0)


def group_entries_by_day(entries: List[TimeEntry], zone: str) -> "OrderedDict[str, int]":
  tz = zone_info(zone)
  totals: "OrderedDict[str, int]" = OrderedDict()
  for entry in sorted(entries, key=lambda e: e.start):
    label = format_day(entry.start.astimezone(tz).date())
    totals[label] = totals.get(label, 0) + entry.duration_seconds
  return totals


async def log_time(ctx: HandlerContext, slots: LogTimeSlots) -> None:
  client = ctx.require("time_tracking")
  if not slots.project:
    projects = await call(client.get_projects)
    text = "I need a project name to log time. Which project should I log this to?"
    await ctx.reply(text, blocks=[{"type": "section", "text": {"type": "mrkdwn", "text": text}}]
                    + projects_block(projects))
    return
  if slots.duration is None:
    await ctx.reply("I need a duration to log time, e.g. \"2 hours\" or \"30m\".")
    return

  project = await call(client.find_project, slots.project)
  if project is None:
    await reply_unknown_project(ctx, slots.project, client)
    return

  zone = ctx.timezone
  seconds = parse_duration(slots.duration)
  entry_day = parse_date(slots.date or "today", zone, ctx.now)
  if slots.start_time:
    start = combine(entry_day, parse_time(slots.start_time), zone)
  else:
    if entry_day == today_in_zone(zone, ctx.now):
      end = ctx.now
    else:
      end = combine(entry_day, _PAST_DAY_END, zone)
    start = end - timedelta(seconds=seconds)

  await call(client.log_time, project.id, start, seconds, slots.description or "")
  ctx.remember(last_action="logged_time", last_project=project.name)

  day = format_day(start.astimezone(zone_info(zone)).date())
  text = f"✅ Logged {format_duration(seconds)} to *{project.name}* on {day}"
  if slots.description:
    text += f"\n_\"{slots.description}\"_"
  await ctx.reply(text)


async def query_time(ctx: HandlerContext, slots: QueryTimeSlots) -> None:
  client = ctx.require("time_tracking")
  period = period_range(slots.period, ctx.timezone, ctx.now)

  project_id = None
  project_name = "All Projects"
  if slots.project:
    project = await call(client.find_project, slots.project)
    if project is None:
      await reply_unknown_project(ctx, slots.project, client)
      return
    project_id, project_name = project.id, project.name

  entries = await call(client.get_time_entries, period.start, period.end, project_id)
  label = period.label or format_day(period.start_date)
  if not entries:
    await ctx.reply(f"No time logged for {project_name} {label}.")
    return

  total = sum(e.duration_seconds for e in entries)
  text = f"*{project_name}* - {label}\n*Total: {format_duration(total)}*"
  if len(entries) > 1:
    by_day: Dict[str, int] = group_entries_by_day(entries, ctx.timezone)
    text += "\n\n*Breakdown:*\n" + "\n".join(
        f"• {day}: {format_duration(seconds)}" for day, seconds in by_day.items())
  await ctx.reply(text)

"""SavvyCal single-use links: create, disable, delete, inspect, list."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ...models import SchedulingLink
from ...savvycal import link_title, validate_duration
from ..context import HandlerContext
from ..schemas import LinkSlots, ListLinksSlots, ScheduleOneoffSlots
from .common import ask_for_missing, call

logger = logging.getLogger(__name__)

LIST_LIMIT = 10

_NO_RECENT_LINK = {
    "disable_link": "Which link should I disable? I don't see any recent links in this conversation.",
    "delete_link": "Which link should I delete? I don't see any recent links in this conversation.",
    "get_link": "Which link do you want details for? I don't see any recent links in this conversation.",
}


def scheduling_blocks(title: str, minutes: int, link: SchedulingLink) -> List[Dict[str, Any]]:
  return [
      {
          "type": "section",
          "text": {"type": "mrkdwn", "text": f"*All set.*\n*{title}* ({minutes} min)\n{link.url}"},
      },
      {
          "type": "actions",
          "elements": [
              {
                  "type": "button",
                  "text": {"type": "plain_text", "text": "Disable link"},
                  "value": link.id,
                  "action_id": "sc_disable",
                  "style": "danger",
              },
          ],
      },
  ]


async def create_link(ctx: HandlerContext, title: str, minutes: Any) -> SchedulingLink:
  """Validate, create and remember a single-use link for this thread."""
  client = ctx.require("scheduling")
  duration = validate_duration(minutes)
  name = link_title(title, duration)
  link = await call(client.create_single_use_link, name, duration)
  ctx.remember(last_link_id=link.id,
               last_link_url=link.url,
               last_link_title=name,
               last_link_duration=duration,
               last_action="created_scheduling_link")
  logger.info("Created scheduling link %s (%s min) %s", name, duration, link.url)
  return link


async def schedule_oneoff(ctx: HandlerContext, slots: ScheduleOneoffSlots) -> None:
  if await ask_for_missing(ctx, slots, "I need a title and duration."):
    return
  link = await create_link(ctx, slots.title, slots.minutes)
  await ctx.reply(f"Done. {link.url}\n\nI already took care of it. You're welcome.")


def _link_id(ctx: HandlerContext, slots: LinkSlots) -> Optional[str]:
  return slots.link_id or ctx.thread_context().get("last_link_id")


async def disable_link(ctx: HandlerContext, slots: LinkSlots) -> None:
  client = ctx.require("scheduling")
  link_id = _link_id(ctx, slots)
  if not link_id:
    await ctx.reply(_NO_RECENT_LINK["disable_link"])
    return
  await call(client.toggle_link, link_id)
  ctx.remember(last_action="disabled_scheduling_link", last_disabled_link_id=link_id)
  await ctx.reply("✅ Disabled. Please. I've handled worse before breakfast.")


async def delete_link(ctx: HandlerContext, slots: LinkSlots) -> None:
  client = ctx.require("scheduling")
  link_id = _link_id(ctx, slots)
  if not link_id:
    await ctx.reply(_NO_RECENT_LINK["delete_link"])
    return
  await call(client.delete_link, link_id)
  context = ctx.thread_context()
  updates: Dict[str, Any] = {"last_action": "deleted_scheduling_link"}
  if context.get("last_link_id") == link_id:
    updates.update(last_link_id=None, last_link_url=None)
  ctx.remember(**updates)
  await ctx.reply("🗑️ Link deleted. Gone. Like it never existed.")


def format_link_details(link: SchedulingLink) -> str:
  status = "🟢 Active" if link.enabled else "🔴 Disabled"
  lines = ["*Link Details:*", "", f"*{link.name or link.id}*", f"Status: {status}", f"URL: {link.url}"]
  if link.description:
    lines.append(f"Description: {link.description}")
  if link.durations:
    lines.append(f"Durations: {', '.join(str(d) for d in link.durations)} minutes")
  if link.default_duration:
    lines.append(f"Default: {link.default_duration} minutes")
  return "\n".join(lines)


async def get_link(ctx: HandlerContext, slots: LinkSlots) -> None:
  client = ctx.require("scheduling")
  link_id = _link_id(ctx, slots)
  if not link_id:
    await ctx.reply(_NO_RECENT_LINK["get_link"])
    return
  link = await call(client.get_link, link_id)
  ctx.remember(last_action="viewed_link_details", viewed_link_id=link_id)
  await ctx.reply(format_link_details(link))


async def list_links(ctx: HandlerContext, slots: ListLinksSlots) -> None:
  client = ctx.require("scheduling")
  links = await call(client.get_links)
  if not links:
    await ctx.reply("No SavvyCal links found. Want me to create one?")
    return

  lines = ["*Your SavvyCal links:*", ""]
  for index, link in enumerate(links[:LIST_LIMIT], start=1):
    status = "🟢" if link.enabled else "🔴"
    lines.append(f"{index}. {status} *{link.name or link.id}*")
    lines.append(f"   {link.url}")
    if link.description:
      lines.append(f"   _{link.description}_")
  if len(links) > LIST_LIMIT:
    lines.append(f"_...and {len(links) - LIST_LIMIT} more_")

  ctx.remember(last_action="listed_scheduling_links", total_links_count=len(links))
  await ctx.reply("\n".join(lines))


async def link_action(ctx: HandlerContext, slots: LinkSlots) -> None:
  if slots.intent == "disable_link":
    await disable_link(ctx, slots)
  elif slots.intent == "delete_link":
    await delete_link(ctx, slots)
  else:
    await get_link(ctx, slots)

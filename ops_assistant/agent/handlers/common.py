from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from ...models import NamedItem
from ...utils import bullet_list
from ..context import HandlerContext

T = TypeVar("T")

PROJECT_LIST_LIMIT = 10


async def call(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
  """Run a blocking provider call off the event loop."""
  return await asyncio.to_thread(fn, *args, **kwargs)


def _slot_label(name: str) -> str:
  return name.replace("_", " ")


def _join_labels(names: List[str]) -> str:
  labels = [_slot_label(n) for n in names]
  if len(labels) <= 1:
    return "".join(labels)
  return ", ".join(labels[:-1]) + " and " + labels[-1]


async def ask_for_missing(ctx: HandlerContext, slots: Any, lead: Optional[str] = None) -> bool:
  """Reply with a clarification when required slots are empty.

  Returns True when a clarification was sent and the handler should stop.
  """
  missing = slots.missing_slots()
  if not missing:
    return False
  text = lead or f"I need the {_join_labels(missing)}."
  examples = getattr(slots, "examples", ())
  if examples:
    text += " Try: " + " or ".join(f"`{e}`" for e in examples)
  await ctx.reply(text)
  return True


def projects_block(projects: Iterable[NamedItem]) -> List[dict]:
  lines = [f"• {p.name}" for p in projects]
  body = bullet_list(lines, PROJECT_LIST_LIMIT) if lines else "No projects found."
  return [{
      "type": "section",
      "text": {"type": "mrkdwn", "text": f"*Available projects:*\n{body}"},
  }]


async def reply_unknown_project(ctx: HandlerContext, name: str, client: Any) -> None:
  projects = await call(client.get_projects)
  text = f"Couldn't find project \"{name}\". Here are the ones I can see."
  await ctx.reply(text, blocks=[{
      "type": "section",
      "text": {"type": "mrkdwn", "text": text},
  }] + projects_block(projects))

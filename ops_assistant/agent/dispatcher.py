from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from ..errors import AssistantError, classify_error, render_error
from ..utils import _log_debug
from .context import HandlerContext
from .schemas import ClassifiedIntent, parse_intent_call

logger = logging.getLogger(__name__)

Handler = Callable[[HandlerContext, Any], Awaitable[None]]

FALLBACK_REPLIES = (
    "I can handle scheduling links, time tracking, calendar, tasks and daily rundowns. What do you need?",
    "Not sure what you're after. I do scheduling links, time tracking, your calendar, Asana tasks and rundowns.",
    "Try me with scheduling links, logging or checking time, calendar questions, tasks, or a daily rundown.",
)

DONE_REPLY = "Done."

# Errors the user can fix by rephrasing; logged without a traceback.
_EXPECTED_KINDS = ("parse", "validation", "config")


class HandlerSpec:

  def __init__(self, intent: str, handler: Handler, service: str) -> None:
    self.intent = intent
    self.handler = handler
    self.service = service

  def __repr__(self) -> str:
    return f"HandlerSpec({self.intent!r}, service={self.service!r})"


class IntentDispatcher:
  """Routes a classified intent to its handler behind one failure boundary.

  Every ``dispatch`` sends exactly one message: the handler's reply, a
  clarification, the generic fallback, or a rendered error.
  """

  def __init__(self,
               specs: Iterable[HandlerSpec],
               rng: Optional[random.Random] = None) -> None:
    self.registry: Dict[str, HandlerSpec] = {spec.intent: spec for spec in specs}
    self.rng = rng or random.Random()

  async def dispatch(self, classified: ClassifiedIntent, ctx: HandlerContext) -> None:
    _log_debug(f"[dispatch] intent={classified.name!r} slots={classified.slots} "
               f"missing={classified.missing_questions}")
    if not classified.name:
      if classified.missing_questions:
        await ctx.reply(classified.missing_questions[0])
      else:
        await ctx.reply(self.fallback())
      return

    spec = self.registry.get(classified.name)
    if spec is None:
      logger.info("No handler for intent %r", classified.name)
      await ctx.reply(self.fallback())
      return

    ctx.classifier_response = classified.response

    async def _run() -> None:
      call = parse_intent_call(classified)
      await spec.handler(ctx, call)

    await self.guard(ctx, spec.service, _run, label=classified.name)

  async def guard(self,
                  ctx: HandlerContext,
                  service: str,
                  run: Callable[[], Awaitable[None]],
                  label: str = "") -> None:
    try:
      await run()
    except asyncio.CancelledError:
      raise
    except Exception as exc:
      err = classify_error(exc, service)
      if err.kind in _EXPECTED_KINDS:
        logger.info("%s: %s (%s)", label or service, err.message, err.kind)
      else:
        logger.exception("Handler %s failed (%s)", label or service, err.kind)
      await self._send_error(ctx, err, service)
      return

    if not ctx.replied:
      logger.warning("Handler %s finished without replying", label or service)
      await ctx.reply(DONE_REPLY)

  async def _send_error(self, ctx: HandlerContext, err: AssistantError, service: str) -> None:
    if ctx.replied:
      logger.warning("Suppressing error reply after handler already replied: %s", err.message)
      return
    await ctx.reply(render_error(err, service))

  def fallback(self) -> str:
    return self.rng.choice(FALLBACK_REPLIES)

"""Inbound message pipeline.

tracker decision -> timezone -> farewell / fast path / classifier -> dispatcher
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..config import AGENT_MODE, REQUEST_TIMEOUT_SECONDS
from ..slack import InboundMessage, SlackTransport
from ..stores import ThreadStore
from ..timezones import TimezoneResolver
from ..utils import _log_debug, utc_now
from .context import HandlerContext, Providers
from .conversation import ConversationTracker, Decision
from .dispatcher import IntentDispatcher
from .fast_path import match_fast_path
from .intent_router import IntentClassifier

logger = logging.getLogger(__name__)

FAREWELL_REPLY = "Anytime. I'll step out of this thread. Mention me if you need me again. 👋"
AGENT_OFFLINE_REPLY = ("My AI brain is offline right now, but I can still handle basics. "
                       "Try: `schedule \"Meeting name\" 30` or `what time is it`")
TIMEOUT_REPLY = "That took longer than it should have. Give it another try in a moment."


class Assistant:

  def __init__(self,
               transport: SlackTransport,
               tracker: ConversationTracker,
               resolver: TimezoneResolver,
               classifier: IntentClassifier,
               dispatcher: IntentDispatcher,
               providers: Providers,
               thread_store: ThreadStore,
               agent_mode: bool = AGENT_MODE,
               request_timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
    self.transport = transport
    self.tracker = tracker
    self.resolver = resolver
    self.classifier = classifier
    self.dispatcher = dispatcher
    self.providers = providers
    self.thread_store = thread_store
    self.agent_mode = agent_mode
    self.request_timeout = request_timeout

  def context_for(self,
                  channel: str,
                  thread_ts: Optional[str],
                  user_id: Optional[str],
                  zone: str,
                  now: Optional[datetime] = None) -> HandlerContext:
    return HandlerContext(self.transport, self.thread_store, self.providers, channel, thread_ts,
                          user_id, zone, now=now)

  async def handle_message(self,
                           message: InboundMessage,
                           now: Optional[datetime] = None) -> Optional[HandlerContext]:
    """Answer ``message`` if it is addressed to the assistant.

    Returns the handler context (with the replies sent) or ``None`` when the
    message was ignored.
    """
    instant = now or utc_now()
    decision = self.tracker.decide(message, instant)
    _log_debug(f"[orchestrator] {message.channel}/{message.reply_thread} -> {decision.action}")
    if not decision.respond:
      return None

    zone = await self.resolver.resolve(message.user)
    ctx = self.context_for(message.channel, decision.thread_ts, message.user, zone, instant)
    try:
      await asyncio.wait_for(self._respond(message, decision, ctx), self.request_timeout)
    except asyncio.TimeoutError:
      logger.warning("Request in %s/%s timed out after %ss", message.channel,
                     decision.thread_ts, self.request_timeout)
      if not ctx.replied:
        await ctx.reply(TIMEOUT_REPLY)

    if decision.action == "respond" and decision.thread_ts and not message.is_dm:
      self.tracker.touch(message.channel, decision.thread_ts)
    return ctx

  async def _respond(self, message: InboundMessage, decision: Decision, ctx: HandlerContext) -> None:
    if decision.action == "exit":
      ctx.remember(last_action="conversation_ended")
      await ctx.reply(FAREWELL_REPLY)
      return

    fast = match_fast_path(message.text, ctx.timezone, ctx.now)
    if fast is not None:
      if fast.intent is not None:
        await self.dispatcher.dispatch(fast.intent, ctx)
      else:
        reply = fast.reply or ""
        await self.dispatcher.guard(ctx, "Slack", lambda: ctx.reply(reply), label="fast_path")
      return

    if not self.agent_mode or not self.classifier.available:
      await ctx.reply(AGENT_OFFLINE_REPLY)
      return

    context = dict(ctx.thread_context(), timezone=ctx.timezone)
    classified = await self.classifier.classify(message.text, context)
    await self.dispatcher.dispatch(classified, ctx)

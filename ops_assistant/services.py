"""Process-wide wiring: stores, providers and the Slack entry points.

``build_services`` is called once at startup; the HTTP routes and the Socket
Mode runner both hand Slack payloads to the same ``AssistantService``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from slack_sdk import WebClient

from .agent.context import HandlerContext, Providers
from .agent.conversation import ConversationTracker
from .agent.dispatcher import IntentDispatcher
from .agent.fast_path import parse_schedule_command
from .agent.handlers import build_handler_specs
from .agent.handlers.scheduling import create_link, scheduling_blocks
from .agent.intent_router import IntentClassifier
from .agent.orchestrator import Assistant
from .asana import AsanaClient
from .config import (ASANA_API_TOKEN, CACHE_RETENTION_SECONDS, SAVVYCAL_TOKEN, SLACK_BOT_TOKEN,
                     THREAD_ACTIVE_SECONDS, TIMEZONE_TTL_SECONDS, TOGGL_API_TOKEN)
from .gcal import GoogleCalendarClient
from .savvycal import SavvyCalClient
from .slack import InboundMessage, ResponseUrlTransport, SlackTransport
from .stores import Stores
from .timezones import TimezoneResolver
from .toggl import TogglClient

logger = logging.getLogger(__name__)

SCHEDULE_USAGE = 'Usage: `/schedule "Meeting name" 30`'


def build_providers(stores: Stores) -> Providers:
  """Adapters for every provider with credentials; the rest stay ``None``."""
  calendar = GoogleCalendarClient(cache=stores.api_cache)
  providers = Providers(
      calendar=calendar if calendar.configured else None,
      tasks=AsanaClient(cache=stores.api_cache) if ASANA_API_TOKEN else None,
      time_tracking=TogglClient(cache=stores.api_cache) if TOGGL_API_TOKEN else None,
      scheduling=SavvyCalClient(cache=stores.api_cache) if SAVVYCAL_TOKEN else None,
  )
  for name in ("calendar", "tasks", "time_tracking", "scheduling"):
    if getattr(providers, name) is None:
      logger.warning("Provider %s is not configured; its intents will report missing config", name)
  return providers


class AssistantService:

  def __init__(self,
               stores: Stores,
               transport: SlackTransport,
               assistant: Assistant,
               bot_user_id: Optional[str] = None) -> None:
    self.stores = stores
    self.transport = transport
    self.assistant = assistant
    self.bot_user_id = bot_user_id

  @property
  def dispatcher(self) -> IntentDispatcher:
    return self.assistant.dispatcher

  async def load_bot_user_id(self) -> Optional[str]:
    try:
      self.bot_user_id = await self.transport.bot_user_id()
    except Exception:
      logger.warning("Could not look up the bot user id; mention filtering is limited",
                     exc_info=True)
    return self.bot_user_id

  def is_duplicate(self, event_id: Optional[str]) -> bool:
    """Record ``event_id``; True when Slack already delivered it."""
    if not event_id:
      return False
    key = ("event", event_id)
    if self.stores.seen_events.get(key, max_age=CACHE_RETENTION_SECONDS) is not None:
      return True
    self.stores.seen_events.set(key, True)
    return False

  def accept_event(self, payload: Dict[str, Any]) -> Optional[InboundMessage]:
    """Normalize an ``event_callback`` payload, dropping retries and non-user events."""
    if payload.get("type") != "event_callback":
      return None
    event_id = payload.get("event_id")
    if self.is_duplicate(event_id):
      logger.info("Skipping duplicate Slack event %s", event_id)
      return None
    bot_user_id = self.bot_user_id
    for auth in payload.get("authorizations") or []:
      if auth.get("user_id"):
        bot_user_id = auth["user_id"]
        break
    return InboundMessage.from_event(payload.get("event") or {}, bot_user_id, event_id)

  async def process_message(self, message: InboundMessage) -> None:
    try:
      await self.assistant.handle_message(message)
    except asyncio.CancelledError:
      raise
    except Exception:
      logger.exception("Unhandled failure for message %s in %s", message.ts, message.channel)

  async def handle_events_payload(self, payload: Dict[str, Any]) -> None:
    message = self.accept_event(payload)
    if message is not None:
      await self.process_message(message)

  async def handle_command(self, payload: Dict[str, Any]) -> None:
    """Run ``/schedule "<title>" <minutes>`` and answer through ``response_url``."""
    command = payload.get("command") or "/schedule"
    classified = parse_schedule_command(f"schedule {payload.get('text') or ''}")
    transport = ResponseUrlTransport(payload.get("response_url") or "")
    channel = payload.get("channel_id") or ""
    zone = await self.assistant.resolver.resolve(payload.get("user_id"))
    ctx = HandlerContext(transport, self.stores.thread_context, self.assistant.providers,
                         channel, payload.get("thread_ts") or payload.get("trigger_id"),
                         payload.get("user_id"), zone)
    if classified is None:
      await ctx.reply(SCHEDULE_USAGE)
      return
    title = str(classified.slots["title"])
    minutes = classified.slots["minutes"]

    async def _run() -> None:
      link = await create_link(ctx, title, minutes)
      duration = link.default_duration or minutes
      await ctx.reply(link.url, blocks=scheduling_blocks(title, duration, link))

    await self.dispatcher.guard(ctx, "SavvyCal", _run, label=command)

  async def handle_interaction(self, payload: Dict[str, Any]) -> None:
    """Handle the "Disable link" button on a scheduling link message."""
    for action in payload.get("actions") or []:
      if action.get("action_id") != "sc_disable":
        continue
      link_id = action.get("value")
      channel = (payload.get("channel") or {}).get("id") or (payload.get("user") or {}).get("id")
      thread_ts = (payload.get("message") or {}).get("ts")
      user_id = (payload.get("user") or {}).get("id")
      zone = await self.assistant.resolver.resolve(user_id)
      ctx = self.assistant.context_for(channel, thread_ts, user_id, zone)

      async def _run() -> None:
        scheduling = ctx.require("scheduling")
        await asyncio.to_thread(scheduling.toggle_link, link_id)
        ctx.remember(last_action="disabled_scheduling_link", last_disabled_link_id=link_id)
        await ctx.reply("✅ Disabled.")

      await self.dispatcher.guard(ctx, "SavvyCal", _run, label="sc_disable")


def build_services(stores: Stores,
                   transport: Optional[SlackTransport] = None,
                   providers: Optional[Providers] = None,
                   classifier: Optional[IntentClassifier] = None) -> AssistantService:
  if transport is None:
    if not SLACK_BOT_TOKEN:
      logger.warning("SLACK_BOT_TOKEN missing; replies to Slack will fail")
    transport = SlackTransport(client=WebClient(token=SLACK_BOT_TOKEN or None))
  providers = providers if providers is not None else build_providers(stores)
  assistant = Assistant(
      transport=transport,
      tracker=ConversationTracker(stores.conversations, active_seconds=THREAD_ACTIVE_SECONDS),
      resolver=TimezoneResolver(transport, stores.timezones, ttl_seconds=TIMEZONE_TTL_SECONDS),
      classifier=classifier or IntentClassifier(),
      dispatcher=IntentDispatcher(build_handler_specs()),
      providers=providers,
      thread_store=stores.thread_context,
  )
  return AssistantService(stores, transport, assistant)

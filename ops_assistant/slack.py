from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from slack_sdk import WebClient
from slack_sdk.socket_mode import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.webhook import WebhookClient

from .config import SLACK_APP_TOKEN, SLACK_BOT_TOKEN
from .errors import ConfigError, error_from_status
from .utils import _log_debug, normalize_text

logger = logging.getLogger(__name__)

_MENTION_RE = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")
_IGNORED_SUBTYPES = {"bot_message", "message_changed", "message_deleted", "channel_join",
                     "channel_leave", "thread_broadcast"}


def strip_mentions(text: str) -> str:
  return normalize_text(_MENTION_RE.sub(" ", text or ""))


class InboundMessage(BaseModel):
  """A user message normalized from a Slack event."""
  model_config = ConfigDict(extra="ignore")

  channel: str
  user: str
  text: str
  ts: str
  thread_ts: Optional[str] = None
  channel_type: Optional[str] = None
  event_type: str = "message"
  event_id: Optional[str] = None

  @property
  def is_dm(self) -> bool:
    return self.channel_type == "im" or self.channel.startswith("D")

  @property
  def is_mention(self) -> bool:
    return self.event_type == "app_mention"

  @property
  def in_thread(self) -> bool:
    return bool(self.thread_ts) and self.thread_ts != self.ts

  @property
  def reply_thread(self) -> str:
    """Thread the reply goes to; a root message opens a thread under itself."""
    return self.thread_ts or self.ts

  @classmethod
  def from_event(cls,
                 event: Dict[str, Any],
                 bot_user_id: Optional[str] = None,
                 event_id: Optional[str] = None) -> Optional["InboundMessage"]:
    """Return ``None`` for events the assistant must not answer.

    Bot messages, edits and joins are dropped. A plain ``message`` event that
    mentions the bot is dropped too; the matching ``app_mention`` event is the
    one that gets handled.
    """
    if not isinstance(event, dict):
      return None
    event_type = event.get("type") or "message"
    if event_type not in ("message", "app_mention"):
      return None
    if event.get("bot_id") or event.get("subtype") in _IGNORED_SUBTYPES:
      return None
    user = event.get("user")
    if not user or (bot_user_id and user == bot_user_id):
      return None
    raw_text = event.get("text") or ""
    if (event_type == "message" and event.get("channel_type") != "im" and bot_user_id
        and f"<@{bot_user_id}" in raw_text):
      return None
    text = strip_mentions(raw_text)
    if not text or not event.get("channel") or not event.get("ts"):
      return None
    return cls(channel=event["channel"],
               user=user,
               text=text,
               ts=event["ts"],
               thread_ts=event.get("thread_ts"),
               channel_type=event.get("channel_type"),
               event_type=event_type,
               event_id=event_id)


class SlackTransport:
  """Outbound messages and identity lookups over the Slack Web API."""

  def __init__(self, client: Optional[WebClient] = None, token: str = SLACK_BOT_TOKEN) -> None:
    if client is None and not token:
      raise ConfigError("SLACK_BOT_TOKEN", service="Slack")
    self.client = client or WebClient(token=token)
    self._bot_user_id: Optional[str] = None

  async def post_message(self,
                         channel: str,
                         text: str,
                         thread_ts: Optional[str] = None,
                         blocks: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"channel": channel, "text": text}
    if thread_ts:
      kwargs["thread_ts"] = thread_ts
    if blocks:
      kwargs["blocks"] = blocks
    _log_debug(f"[slack] post {channel}/{thread_ts}: {text[:120]}")
    response = await asyncio.to_thread(self.client.chat_postMessage, **kwargs)
    return response.data if hasattr(response, "data") else dict(response)

  async def get_user_timezone(self, user_id: str) -> Optional[str]:
    response = await asyncio.to_thread(self.client.users_info, user=user_id)
    user = response.get("user") or {}
    return user.get("tz")

  async def bot_user_id(self) -> Optional[str]:
    if self._bot_user_id is None:
      response = await asyncio.to_thread(self.client.auth_test)
      self._bot_user_id = response.get("user_id")
    return self._bot_user_id


class ResponseUrlTransport:
  """Replies to a slash command or button click through its ``response_url``."""

  def __init__(self, response_url: str, client: Optional[WebhookClient] = None) -> None:
    self.client = client or WebhookClient(response_url)

  async def post_message(self,
                         channel: str,
                         text: str,
                         thread_ts: Optional[str] = None,
                         blocks: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    _log_debug(f"[slack] respond {channel}: {text[:120]}")
    response = await asyncio.to_thread(self.client.send, text=text, blocks=blocks,
                                       response_type="in_channel")
    if response.status_code >= 400:
      raise error_from_status(response.status_code,
                              f"response_url rejected the reply: {response.body}", "Slack")
    return {"ok": True}


EventCallback = Callable[[Dict[str, Any]], Awaitable[Any]]


class SocketModeRunner:
  """Receives Slack envelopes over Socket Mode and hands them to the event loop.

  The SDK calls listeners on its own thread; each envelope is acknowledged
  there and the payload is scheduled onto ``loop``.
  """

  def __init__(self,
               loop: asyncio.AbstractEventLoop,
               on_event: EventCallback,
               on_command: Optional[EventCallback] = None,
               on_interaction: Optional[EventCallback] = None,
               app_token: str = SLACK_APP_TOKEN,
               web_client: Optional[WebClient] = None) -> None:
    if not app_token:
      raise ConfigError("SLACK_APP_TOKEN", service="Slack")
    self.loop = loop
    self.handlers: Dict[str, Optional[EventCallback]] = {
        "events_api": on_event,
        "slash_commands": on_command,
        "interactive": on_interaction,
    }
    self.client = SocketModeClient(app_token=app_token, web_client=web_client)
    self.client.socket_mode_request_listeners.append(self._listener)

  def _listener(self, client: SocketModeClient, req: SocketModeRequest) -> None:
    client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
    handler = self.handlers.get(req.type)
    if handler is None:
      return
    future = asyncio.run_coroutine_threadsafe(handler(req.payload), self.loop)
    future.add_done_callback(self._log_failure)

  @staticmethod
  def _log_failure(future) -> None:
    if future.cancelled():
      return
    exc = future.exception()
    if exc is not None:
      logger.error("Socket Mode handler failed", exc_info=exc)

  def start(self) -> None:
    logger.info("Connecting Slack Socket Mode client")
    self.client.connect()

  def stop(self) -> None:
    self.client.disconnect()
    self.client.close()

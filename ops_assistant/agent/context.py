from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..asana import AsanaClient
from ..errors import ConfigError
from ..gcal import GoogleCalendarClient
from ..savvycal import SavvyCalClient
from ..slack import SlackTransport
from ..stores import ThreadStore
from ..toggl import TogglClient
from ..utils import utc_now

_PROVIDER_CONFIG = {
    "calendar": ("Google Calendar", "GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_TOKEN_FILE"),
    "tasks": ("Asana", "ASANA_API_TOKEN"),
    "time_tracking": ("Toggl", "TOGGL_API_TOKEN"),
    "scheduling": ("SavvyCal", "SAVVYCAL_TOKEN"),
}


class Providers:
  """Configured provider adapters; an unconfigured one is ``None``."""

  def __init__(self,
               calendar: Optional[GoogleCalendarClient] = None,
               tasks: Optional[AsanaClient] = None,
               time_tracking: Optional[TogglClient] = None,
               scheduling: Optional[SavvyCalClient] = None) -> None:
    self.calendar = calendar
    self.tasks = tasks
    self.time_tracking = time_tracking
    self.scheduling = scheduling


class HandlerContext:
  """Everything a handler needs for one inbound message.

  ``reply`` is the only way a handler talks back; the dispatcher checks
  ``replies`` to keep the one-message-per-dispatch rule.
  """

  def __init__(self,
               transport: SlackTransport,
               thread_store: ThreadStore,
               providers: Providers,
               channel: str,
               thread_ts: Optional[str],
               user_id: Optional[str],
               timezone: str,
               now: Optional[datetime] = None,
               classifier_response: str = "") -> None:
    self.transport = transport
    self.thread_store = thread_store
    self.providers = providers
    self.channel = channel
    self.thread_ts = thread_ts
    self.user_id = user_id
    self.timezone = timezone
    self.now = now or utc_now()
    self.classifier_response = classifier_response
    self.replies: List[str] = []

  @property
  def replied(self) -> bool:
    return bool(self.replies)

  async def reply(self, text: str, blocks: Optional[List[Dict[str, Any]]] = None) -> None:
    self.replies.append(text)
    await self.transport.post_message(self.channel, text, thread_ts=self.thread_ts, blocks=blocks)

  def thread_context(self) -> Dict[str, Any]:
    return self.thread_store.get(self.channel, self.thread_ts)

  def remember(self, **data: Any) -> Dict[str, Any]:
    data.setdefault("last_action_time", utc_now().isoformat())
    return self.thread_store.update(self.channel, self.thread_ts, data)

  def require(self, name: str) -> Any:
    provider = getattr(self.providers, name, None)
    if provider is None:
      service, missing = _PROVIDER_CONFIG[name]
      raise ConfigError(missing, service=service)
    return provider

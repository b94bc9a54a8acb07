"""Per-thread activity tracking: which messages the assistant answers.

A channel thread becomes active when the assistant is mentioned and stays
active while messages keep arriving. "Active" is derived on read from the
stored flag and the last activity instant, so an idle thread expires without
any event. Direct messages are always answered.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Literal, NamedTuple, Optional

from ..config import THREAD_ACTIVE_SECONDS
from ..models import ThreadConversationState
from ..slack import InboundMessage
from ..stores import ThreadStore
from ..utils import utc_now

EXIT_PHRASES = frozenset({"bye", "goodbye", "thanks", "thank you", "done", "exit", "leave"})

_TRAILING_PUNCT_RE = re.compile(r"[\s.!]+$")

Action = Literal["ignore", "respond", "exit"]


class Decision(NamedTuple):
  action: Action
  thread_ts: Optional[str] = None

  @property
  def respond(self) -> bool:
    return self.action != "ignore"


def is_exit_phrase(text: str) -> bool:
  cleaned = _TRAILING_PUNCT_RE.sub("", (text or "").strip().lower())
  return cleaned in EXIT_PHRASES


class ConversationTracker:

  def __init__(self,
               store: ThreadStore,
               active_seconds: float = THREAD_ACTIVE_SECONDS) -> None:
    self.store = store
    self.window = timedelta(seconds=active_seconds)

  def state(self, channel: str, thread_ts: str) -> Optional[ThreadConversationState]:
    stored = self.store.get(channel, thread_ts)
    if not stored:
      return None
    return ThreadConversationState(**stored)

  def is_active(self, channel: str, thread_ts: str, now: Optional[datetime] = None) -> bool:
    state = self.state(channel, thread_ts)
    if state is None or not state.active or state.last_activity is None:
      return False
    return (now or utc_now()) - state.last_activity < self.window

  def activate(self,
               channel: str,
               thread_ts: str,
               user: Optional[str],
               now: Optional[datetime] = None) -> ThreadConversationState:
    current = self.state(channel, thread_ts)
    started_by = current.started_by if current and current.active and current.started_by else user
    state = ThreadConversationState(channel_id=channel,
                                    thread_id=thread_ts,
                                    active=True,
                                    started_by=started_by,
                                    last_activity=now or utc_now())
    self.store.update(channel, thread_ts, state.model_dump())
    return state

  def touch(self, channel: str, thread_ts: str, now: Optional[datetime] = None) -> None:
    if self.state(channel, thread_ts) is None:
      return
    self.store.update(channel, thread_ts, {"last_activity": now or utc_now()})

  def deactivate(self, channel: str, thread_ts: str) -> None:
    if self.state(channel, thread_ts) is None:
      return
    self.store.update(channel, thread_ts, {"active": False})

  def decide(self, message: InboundMessage, now: Optional[datetime] = None) -> Decision:
    """Decide whether ``message`` is addressed to the assistant.

    Mutates thread state: a mention activates the thread it lands in (a root
    mention opens a thread under itself), a reply in an active thread refreshes
    it, and an exit phrase in a channel thread closes it.
    """
    instant = now or utc_now()
    thread = message.reply_thread

    if message.is_dm:
      return Decision("respond", thread if message.in_thread else None)

    if message.is_mention:
      if is_exit_phrase(message.text) and self.is_active(message.channel, thread, instant):
        self.deactivate(message.channel, thread)
        return Decision("exit", thread)
      self.activate(message.channel, thread, message.user, instant)
      return Decision("respond", thread)

    if not message.in_thread or not self.is_active(message.channel, thread, instant):
      return Decision("ignore")

    if is_exit_phrase(message.text):
      self.deactivate(message.channel, thread)
      return Decision("exit", thread)

    self.touch(message.channel, thread, instant)
    return Decision("respond", thread)

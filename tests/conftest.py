"""
Shared fixtures: a controllable clock, fresh stores and fake Slack/provider clients
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from ops_assistant.agent.context import HandlerContext, Providers
from ops_assistant.stores import create_stores

# Tuesday 2024-03-12, 11:00 in New York (EDT, two days after spring-forward).
NOW = datetime(2024, 3, 12, 15, 0, tzinfo=timezone.utc)
ZONE = "America/New_York"


class FakeClock:

  def __init__(self, start: float = 1_700_000_000.0) -> None:
    self.value = start

  def __call__(self) -> float:
    return self.value

  def advance(self, seconds: float) -> None:
    self.value += seconds


@pytest.fixture
def clock():
  return FakeClock()


@pytest.fixture
def stores(clock):
  return create_stores(clock)


@pytest.fixture
def transport():
  fake = MagicMock()
  fake.post_message = AsyncMock(return_value={"ok": True})
  fake.get_user_timezone = AsyncMock(return_value=ZONE)
  fake.bot_user_id = AsyncMock(return_value="UBOT")
  return fake


@pytest.fixture
def providers():
  calendar = MagicMock()
  calendar.supports_attendees = True
  calendar.next_event.return_value = None
  return Providers(calendar=calendar, tasks=MagicMock(), time_tracking=MagicMock(),
                   scheduling=MagicMock())


@pytest.fixture
def make_ctx(transport, stores, providers):

  def _make(channel="C1", thread_ts="111.1", zone=ZONE, now=NOW, provider_set=None):
    return HandlerContext(transport, stores.thread_context, provider_set or providers,
                          channel, thread_ts, "U1", zone, now=now)

  return _make


def sent_texts(transport):
  return [c.args[1] for c in transport.post_message.await_args_list]

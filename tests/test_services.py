"""
Tests for the Slack entry points shared by HTTP and Socket Mode
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from ops_assistant.agent.context import Providers
from ops_assistant.agent.intent_router import IntentClassifier
from ops_assistant.models import SchedulingLink
from ops_assistant.services import SCHEDULE_USAGE, build_services

from conftest import sent_texts


@pytest.fixture
def response_transport(monkeypatch):
  fake = MagicMock()
  fake.post_message = AsyncMock(return_value={"ok": True})
  monkeypatch.setattr("ops_assistant.services.ResponseUrlTransport", lambda url: fake)
  return fake


@pytest.fixture
def service(stores, transport, providers):
  return build_services(stores, transport=transport, providers=providers,
                        classifier=IntentClassifier(client=None, api_key=""))


def _event_payload(event_id="Ev1", text="hi there", event_type="message", channel="D1"):
  return {
      "type": "event_callback",
      "event_id": event_id,
      "authorizations": [{"user_id": "UBOT"}],
      "event": {"type": event_type, "user": "U1", "text": text, "channel": channel,
                "channel_type": "im" if channel.startswith("D") else "channel",
                "ts": "1.0"},
  }


def test_accept_event_drops_retries(service):
  assert service.accept_event(_event_payload()).text == "hi there"
  assert service.accept_event(_event_payload()) is None
  assert service.accept_event(_event_payload(event_id="Ev2")) is not None


def test_accept_event_prefers_app_mention(service):
  plain = _event_payload(text="<@UBOT> rundown", channel="C1")
  mention = _event_payload(event_id="Ev2", text="<@UBOT> rundown", event_type="app_mention",
                           channel="C1")
  assert service.accept_event(plain) is None
  assert service.accept_event(mention).text == "rundown"
  assert service.accept_event({"type": "url_verification"}) is None


@pytest.mark.asyncio
async def test_load_bot_user_id(service, transport):
  assert await service.load_bot_user_id() == "UBOT"
  transport.bot_user_id.side_effect = RuntimeError("auth failed")
  assert await service.load_bot_user_id() == "UBOT"


@pytest.mark.asyncio
async def test_events_payload_runs_pipeline(service, transport):
  await service.handle_events_payload(_event_payload(text="what's the date?"))
  assert sent_texts(transport)[0].startswith("Today is ")


@pytest.mark.asyncio
async def test_process_message_contains_failures(service):
  service.assistant = MagicMock()
  service.assistant.handle_message = AsyncMock(side_effect=RuntimeError("boom"))
  message = service.accept_event(_event_payload())
  await service.process_message(message)
  service.assistant.handle_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_schedule_command_replies_with_button(service, providers, response_transport,
                                                    stores):
  providers.scheduling.create_single_use_link.return_value = SchedulingLink(
      id="L1", url="https://savvycal.com/L1", default_duration=30)
  await service.handle_command({"command": "/schedule", "text": '"Sync" 30',
                                "response_url": "https://hooks.slack.test/1",
                                "channel_id": "C1", "user_id": "U1", "trigger_id": "9.9"})

  call = response_transport.post_message.await_args
  assert call.args[:2] == ("C1", "https://savvycal.com/L1")
  blocks = call.kwargs["blocks"]
  assert blocks[1]["elements"][0]["action_id"] == "sc_disable"
  assert blocks[1]["elements"][0]["value"] == "L1"
  assert stores.thread_context.get("C1", "9.9")["last_link_id"] == "L1"


@pytest.mark.asyncio
async def test_schedule_command_usage(service, response_transport, providers):
  await service.handle_command({"command": "/schedule", "text": "sync", "channel_id": "C1"})
  assert response_transport.post_message.await_args.args[1] == SCHEDULE_USAGE
  providers.scheduling.create_single_use_link.assert_not_called()


@pytest.mark.asyncio
async def test_schedule_command_without_savvycal(stores, transport, response_transport):
  service = build_services(stores, transport=transport, providers=Providers(),
                           classifier=IntentClassifier(client=None, api_key=""))
  await service.handle_command({"command": "/schedule", "text": '"Sync" 30',
                                "channel_id": "C1", "user_id": "U1"})
  text = response_transport.post_message.await_args.args[1]
  assert "I can't access SavvyCal" in text
  assert "SAVVYCAL_TOKEN" in text


@pytest.mark.asyncio
async def test_disable_button(service, providers, transport):
  await service.handle_interaction({
      "type": "block_actions",
      "actions": [{"action_id": "other"}, {"action_id": "sc_disable", "value": "L1"}],
      "channel": {"id": "C1"},
      "message": {"ts": "5.5"},
      "user": {"id": "U1"},
  })
  providers.scheduling.toggle_link.assert_called_once_with("L1")
  transport.post_message.assert_awaited_once_with("C1", "✅ Disabled.", thread_ts="5.5",
                                                  blocks=None)

"""
Tests for the inbound message pipeline from Slack message to reply
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ops_assistant.agent.conversation import ConversationTracker
from ops_assistant.agent.dispatcher import IntentDispatcher
from ops_assistant.agent.handlers import build_handler_specs
from ops_assistant.agent.orchestrator import (AGENT_OFFLINE_REPLY, FAREWELL_REPLY, TIMEOUT_REPLY,
                                              Assistant)
from ops_assistant.agent.schemas import ClassifiedIntent
from ops_assistant.models import NamedItem, SchedulingLink
from ops_assistant.slack import InboundMessage
from ops_assistant.timezones import TimezoneResolver

from conftest import NOW, ZONE, sent_texts


@pytest.fixture
def classifier():
  fake = MagicMock()
  fake.available = True
  fake.classify = AsyncMock(return_value=ClassifiedIntent(name="general_chat",
                                                          response="Happy to help."))
  return fake


@pytest.fixture
def assistant(transport, stores, providers, classifier):
  return Assistant(transport=transport,
                   tracker=ConversationTracker(stores.conversations),
                   resolver=TimezoneResolver(transport, stores.timezones, "UTC"),
                   classifier=classifier,
                   dispatcher=IntentDispatcher(build_handler_specs()),
                   providers=providers,
                   thread_store=stores.thread_context)


def _message(text, channel="C1", ts="100.1", thread_ts=None, event_type="app_mention",
             channel_type="channel"):
  return InboundMessage(channel=channel, user="U1", text=text, ts=ts, thread_ts=thread_ts,
                        channel_type=channel_type, event_type=event_type)


@pytest.mark.asyncio
async def test_unaddressed_message_is_ignored(assistant, transport, classifier):
  result = await assistant.handle_message(_message("lunch?", event_type="message"), NOW)
  assert result is None
  transport.post_message.assert_not_awaited()
  classifier.classify.assert_not_awaited()


@pytest.mark.asyncio
async def test_time_question_answered_in_users_zone(assistant, transport, classifier):
  ctx = await assistant.handle_message(
      _message("what time is it?", channel="D1", event_type="message", channel_type="im"), NOW)
  assert ctx.timezone == ZONE
  transport.post_message.assert_awaited_once_with(
      "D1", "It's 11:00 AM (America/New_York) on Tuesday, March 12.", thread_ts=None,
      blocks=None)
  classifier.classify.assert_not_awaited()


@pytest.mark.asyncio
async def test_classified_request_is_dispatched_in_thread(assistant, transport, classifier,
                                                          providers):
  classifier.classify.return_value = ClassifiedIntent(
      name="log_time", slots={"project": "Acme", "duration": "2h"})
  providers.time_tracking.find_project.return_value = NamedItem(id="p1", name="Acme")

  await assistant.handle_message(_message("log 2h to Acme"), NOW)

  text, context = classifier.classify.await_args.args
  assert text == "log 2h to Acme"
  assert context["timezone"] == ZONE
  transport.post_message.assert_awaited_once_with(
      "C1", "✅ Logged 2h to *Acme* on Tuesday, March 12", thread_ts="100.1", blocks=None)
  assert assistant.tracker.is_active("C1", "100.1")


@pytest.mark.asyncio
async def test_classifier_sees_thread_context(assistant, stores, classifier):
  stores.thread_context.update("C1", "100.1", {"last_link_id": "L5"})
  await assistant.handle_message(_message("disable it", thread_ts="100.1", ts="100.9"), NOW)
  context = classifier.classify.await_args.args[1]
  assert context["last_link_id"] == "L5"


@pytest.mark.asyncio
async def test_schedule_command_skips_classifier(assistant, transport, classifier, providers):
  providers.scheduling.create_single_use_link.return_value = SchedulingLink(
      id="L1", url="https://savvycal.com/L1")
  await assistant.handle_message(_message('schedule "Sync" 30'), NOW)
  classifier.classify.assert_not_awaited()
  assert sent_texts(transport)[0].startswith("Done. https://savvycal.com/L1")


@pytest.mark.asyncio
async def test_exit_phrase_says_goodbye_once(assistant, transport):
  assistant.tracker.activate("C1", "100.1", "U1", NOW)
  await assistant.handle_message(
      _message("thanks!", ts="100.5", thread_ts="100.1", event_type="message"), NOW)
  assert sent_texts(transport) == [FAREWELL_REPLY]
  assert not assistant.tracker.is_active("C1", "100.1", NOW)


@pytest.mark.asyncio
async def test_offline_agent_mode(assistant, transport, classifier):
  assistant.agent_mode = False
  await assistant.handle_message(_message("what's next on my calendar"), NOW)
  assert sent_texts(transport) == [AGENT_OFFLINE_REPLY]
  classifier.classify.assert_not_awaited()


@pytest.mark.asyncio
async def test_slow_request_gets_timeout_reply(assistant, transport, classifier):

  async def slow(*args, **kwargs):
    await asyncio.sleep(5)

  classifier.classify.side_effect = slow
  assistant.request_timeout = 0.05
  await assistant.handle_message(_message("rundown please"), NOW)
  assert sent_texts(transport) == [TIMEOUT_REPLY]


@pytest.mark.asyncio
async def test_clarification_from_classifier(assistant, transport, classifier):
  classifier.classify.return_value = ClassifiedIntent(missing_questions=["Which project?"])
  await assistant.handle_message(_message("log some time"), NOW)
  assert sent_texts(transport) == ["Which project?"]

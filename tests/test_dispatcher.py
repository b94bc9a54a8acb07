"""
Tests for intent dispatch and its failure boundary
"""
import random
from unittest.mock import AsyncMock

import pytest
import requests

from ops_assistant.agent.context import Providers
from ops_assistant.agent.dispatcher import (DONE_REPLY, FALLBACK_REPLIES, HandlerSpec,
                                            IntentDispatcher)
from ops_assistant.agent.schemas import ClassifiedIntent, LogTimeSlots

from conftest import sent_texts


def _dispatcher(handler, intent="log_time", service="Toggl"):
  return IntentDispatcher([HandlerSpec(intent, handler, service)], rng=random.Random(0))


@pytest.mark.asyncio
async def test_clarification_short_circuit(make_ctx, transport):
  handler = AsyncMock()
  ctx = make_ctx()
  await _dispatcher(handler).dispatch(
      ClassifiedIntent(name="", missing_questions=["Which project?"]), ctx)
  assert sent_texts(transport) == ["Which project?"]
  handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_empty_intent_without_questions_gets_fallback(make_ctx, transport):
  await _dispatcher(AsyncMock()).dispatch(ClassifiedIntent(), make_ctx())
  assert sent_texts(transport)[0] in FALLBACK_REPLIES


@pytest.mark.asyncio
async def test_unknown_intent_gets_fallback(make_ctx, transport):
  handler = AsyncMock()
  await _dispatcher(handler).dispatch(ClassifiedIntent(name="fly_to_moon"), make_ctx())
  texts = sent_texts(transport)
  assert len(texts) == 1
  assert texts[0] in FALLBACK_REPLIES
  handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_handler_receives_typed_slots(make_ctx, transport):
  seen = []

  async def handler(ctx, slots):
    seen.append(slots)
    await ctx.reply("ok")

  ctx = make_ctx()
  await _dispatcher(handler).dispatch(
      ClassifiedIntent(name="log_time", slots={"project": "Acme", "duration": "2h"},
                       response="On it"), ctx)
  assert isinstance(seen[0], LogTimeSlots)
  assert seen[0].project == "Acme"
  assert ctx.classifier_response == "On it"
  assert sent_texts(transport) == ["ok"]


@pytest.mark.asyncio
async def test_handler_failure_is_rendered_once(make_ctx, transport):
  handler = AsyncMock(side_effect=requests.ConnectionError("refused"))
  await _dispatcher(handler).dispatch(ClassifiedIntent(name="log_time"), make_ctx())
  texts = sent_texts(transport)
  assert len(texts) == 1
  assert "Can't connect to Toggl" in texts[0]


@pytest.mark.asyncio
async def test_bad_slot_shape_becomes_validation_message(make_ctx, transport):
  handler = AsyncMock()
  await _dispatcher(handler).dispatch(
      ClassifiedIntent(name="log_time", slots={"duration": ["two", "hours"]}), make_ctx())
  handler.assert_not_awaited()
  texts = sent_texts(transport)
  assert len(texts) == 1
  assert texts[0].startswith("❌ Some details for log time don't look right.")


@pytest.mark.asyncio
async def test_missing_provider_names_the_config(make_ctx, transport):

  async def handler(ctx, slots):
    ctx.require("time_tracking")

  ctx = make_ctx(provider_set=Providers())
  await _dispatcher(handler).dispatch(ClassifiedIntent(name="log_time"), ctx)
  texts = sent_texts(transport)
  assert len(texts) == 1
  assert "I can't access Toggl" in texts[0]
  assert "TOGGL_API_TOKEN" in texts[0]


@pytest.mark.asyncio
async def test_error_after_reply_is_suppressed(make_ctx, transport):

  async def handler(ctx, slots):
    await ctx.reply("Logged it")
    raise RuntimeError("late failure")

  await _dispatcher(handler).dispatch(ClassifiedIntent(name="log_time"), make_ctx())
  assert sent_texts(transport) == ["Logged it"]


@pytest.mark.asyncio
async def test_silent_handler_gets_done(make_ctx, transport):
  await _dispatcher(AsyncMock()).dispatch(ClassifiedIntent(name="log_time"), make_ctx())
  assert sent_texts(transport) == [DONE_REPLY]


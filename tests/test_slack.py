"""
Tests for the Slack transports
"""
from unittest.mock import MagicMock

import pytest

from ops_assistant.errors import ConfigError, NotFoundError
from ops_assistant.slack import ResponseUrlTransport, SlackTransport, SocketModeRunner, strip_mentions


def test_strip_mentions():
  assert strip_mentions("<@U123>  log  2h <@U456|sam>") == "log 2h"


def test_transport_requires_token():
  with pytest.raises(ConfigError) as info:
    SlackTransport(client=None, token="")
  assert info.value.missing == "SLACK_BOT_TOKEN"


@pytest.mark.asyncio
async def test_post_message_in_thread_with_blocks():
  web = MagicMock()
  web.chat_postMessage.return_value = MagicMock(data={"ok": True, "ts": "2.0"})
  transport = SlackTransport(client=web)
  blocks = [{"type": "section"}]
  result = await transport.post_message("C1", "hello", thread_ts="1.0", blocks=blocks)
  assert result == {"ok": True, "ts": "2.0"}
  web.chat_postMessage.assert_called_once_with(channel="C1", text="hello", thread_ts="1.0",
                                               blocks=blocks)


@pytest.mark.asyncio
async def test_post_message_at_channel_root():
  web = MagicMock()
  web.chat_postMessage.return_value = MagicMock(data={"ok": True})
  await SlackTransport(client=web).post_message("C1", "hello")
  web.chat_postMessage.assert_called_once_with(channel="C1", text="hello")


@pytest.mark.asyncio
async def test_identity_lookups():
  web = MagicMock()
  web.users_info.return_value = {"user": {"tz": "Europe/Paris"}}
  web.auth_test.return_value = {"user_id": "UBOT"}
  transport = SlackTransport(client=web)
  assert await transport.get_user_timezone("U1") == "Europe/Paris"
  assert await transport.bot_user_id() == "UBOT"
  assert await transport.bot_user_id() == "UBOT"
  web.auth_test.assert_called_once()


@pytest.mark.asyncio
async def test_response_url_transport():
  webhook = MagicMock()
  webhook.send.return_value = MagicMock(status_code=200, body="ok")
  transport = ResponseUrlTransport("https://hooks.slack.test/1", client=webhook)
  assert await transport.post_message("C1", "done") == {"ok": True}
  webhook.send.assert_called_once_with(text="done", blocks=None, response_type="in_channel")

  webhook.send.return_value = MagicMock(status_code=404, body="expired_url")
  with pytest.raises(NotFoundError):
    await transport.post_message("C1", "done")


def test_socket_mode_requires_app_token():
  with pytest.raises(ConfigError) as info:
    SocketModeRunner(MagicMock(), on_event=MagicMock(), app_token="")
  assert info.value.missing == "SLACK_APP_TOKEN"

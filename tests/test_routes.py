"""
Tests for the Slack HTTP endpoints
"""
import json
import time
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient
from slack_sdk.signature import SignatureVerifier

from ops_assistant.app import create_app
from ops_assistant.services import SCHEDULE_USAGE
from ops_assistant.stores import create_stores

SECRET = "test-signing-secret"


@pytest.fixture
def services():
  fake = MagicMock()
  fake.stores = create_stores()
  fake.accept_event.return_value = None
  fake.process_message = AsyncMock()
  fake.handle_command = AsyncMock()
  fake.handle_interaction = AsyncMock()
  return fake


@pytest.fixture
def client(services):
  with TestClient(create_app(services=services, signing_secret="")) as test_client:
    yield test_client


def _signed_headers(body, secret=SECRET, content_type="application/json"):
  timestamp = str(int(time.time()))
  signature = SignatureVerifier(secret).generate_signature(timestamp=timestamp, body=body)
  return {"X-Slack-Request-Timestamp": timestamp, "X-Slack-Signature": signature,
          "Content-Type": content_type}


def test_health(client):
  assert client.get("/").json() == {"ok": True, "service": "ops-assistant"}


def test_url_verification(client):
  response = client.post("/slack/events", json={"type": "url_verification", "challenge": "abc"})
  assert response.json() == {"challenge": "abc"}


def test_event_is_processed_in_background(client, services):
  message = MagicMock()
  services.accept_event.return_value = message
  payload = {"type": "event_callback", "event_id": "Ev1", "event": {"type": "message"}}
  response = client.post("/slack/events", json=payload)
  assert response.json() == {"ok": True}
  services.accept_event.assert_called_once_with(payload)
  services.process_message.assert_called_once_with(message)


def test_invalid_json_is_rejected(client):
  response = client.post("/slack/events", content=b"{not json",
                         headers={"Content-Type": "application/json"})
  assert response.status_code == 400


def test_signature_is_enforced(services):
  app = create_app(services=services, signing_secret=SECRET)
  body = json.dumps({"type": "url_verification", "challenge": "xyz"}).encode()
  with TestClient(app) as signed_client:
    rejected = signed_client.post("/slack/events", content=body,
                                  headers=_signed_headers(body, secret="wrong"))
    assert rejected.status_code == 401
    accepted = signed_client.post("/slack/events", content=body, headers=_signed_headers(body))
    assert accepted.json() == {"challenge": "xyz"}


def _form(data):
  return urlencode(data).encode()


def test_schedule_command_is_acknowledged(client, services):
  data = {"command": "/schedule", "text": '"Sync" 30', "response_url": "https://hooks.test/1",
          "channel_id": "C1", "user_id": "U1"}
  response = client.post("/slack/commands", content=_form(data),
                         headers={"Content-Type": "application/x-www-form-urlencoded"})
  assert response.status_code == 200
  assert response.content == b""
  services.handle_command.assert_called_once_with(data)


def test_schedule_command_usage_is_ephemeral(client, services):
  response = client.post("/slack/commands",
                         content=_form({"command": "/schedule", "text": "sync"}),
                         headers={"Content-Type": "application/x-www-form-urlencoded"})
  assert response.json() == {"response_type": "ephemeral", "text": SCHEDULE_USAGE}
  services.handle_command.assert_not_called()


def test_unknown_command(client):
  response = client.post("/slack/commands", content=_form({"command": "/weather"}),
                         headers={"Content-Type": "application/x-www-form-urlencoded"})
  assert response.json()["text"] == "I don't know the command /weather."


def test_block_actions_are_handled(client, services):
  payload = {"type": "block_actions", "actions": [{"action_id": "sc_disable", "value": "L1"}]}
  response = client.post("/slack/interactions",
                         content=_form({"payload": json.dumps(payload)}),
                         headers={"Content-Type": "application/x-www-form-urlencoded"})
  assert response.status_code == 200
  services.handle_interaction.assert_called_once_with(payload)

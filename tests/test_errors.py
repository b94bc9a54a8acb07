"""
Tests for error classification and the user-facing messages
"""
import asyncio
from unittest.mock import MagicMock

import requests
from slack_sdk.errors import SlackApiError

from ops_assistant.errors import (AuthError, ConfigError, NetworkError, NotFoundError, ParseError,
                                  ProviderTimeoutError, RateLimitError, UnknownError,
                                  ValidationError, classify_error, error_from_status,
                                  render_error)


def test_error_from_status_maps_kinds():
  assert isinstance(error_from_status(401, "nope"), AuthError)
  assert isinstance(error_from_status(404, "gone"), NotFoundError)
  assert isinstance(error_from_status(429, "slow"), RateLimitError)
  err = error_from_status(500, "boom", service="Toggl")
  assert isinstance(err, UnknownError)
  assert err.status == 500
  assert err.service == "Toggl"


def test_classify_keeps_assistant_errors():
  err = ParseError("bad date")
  assert classify_error(err, "Asana") is err
  assert err.service == "Asana"


def test_classify_by_exception_type():
  assert classify_error(asyncio.TimeoutError()).kind == "timeout"
  assert classify_error(requests.Timeout("slow")).kind == "timeout"
  assert classify_error(requests.ConnectionError("refused")).kind == "network"


def test_classify_uses_status_before_message_text():
  exc = requests.HTTPError("connection says 404 somewhere")
  exc.response = MagicMock(status_code=403)
  assert classify_error(exc).kind == "permission"


def test_classify_slack_api_error():
  exc = SlackApiError("failed", {"ok": False, "error": "invalid_auth"})
  assert isinstance(classify_error(exc, "Slack"), AuthError)


def test_classify_falls_back_to_message():
  assert classify_error(RuntimeError("Too Many Requests")).kind == "rate_limit"
  assert classify_error(RuntimeError("ECONNREFUSED")).kind == "network"
  assert classify_error(RuntimeError("weird")).kind == "unknown"


def test_render_validation_with_suggestions():
  text = render_error(ValidationError("Project not found", ["Try `Acme`"]))
  assert text.startswith("❌ Project not found")
  assert "*Try this instead:*\n• Try `Acme`" in text


def test_render_config_names_the_variable():
  text = render_error(ConfigError("TOGGL_API_TOKEN"), "Toggl")
  assert "I can't access Toggl" in text
  assert "TOGGL_API_TOKEN" in text


def test_render_provider_errors():
  assert "couldn't authenticate with Asana" in render_error(AuthError("x", service="Asana"))
  assert "isn't responding" in render_error(ProviderTimeoutError("x"), "Toggl")
  assert "Can't connect to SavvyCal" in render_error(NetworkError("x"), "SavvyCal")
  text = render_error(UnknownError("kaboom"), "Asana")
  assert "Unexpected error with Asana" in text
  assert "kaboom" in text

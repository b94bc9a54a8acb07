"""Error kinds raised by handlers and provider adapters, and their rendering.

Provider adapters raise through ``error_from_status`` so that the dispatch
boundary can classify on structure. ``classify_error`` falls back to matching
the message text only for exceptions that carry no status at all.
"""
from __future__ import annotations

import asyncio
from typing import Any, List, Literal, Optional

import requests
from googleapiclient.errors import HttpError
from slack_sdk.errors import SlackApiError

ErrorKind = Literal[
    "parse",
    "validation",
    "config",
    "auth",
    "permission",
    "not_found",
    "rate_limit",
    "timeout",
    "network",
    "unknown",
]


class AssistantError(Exception):
  kind: ErrorKind = "unknown"

  def __init__(self,
               message: str = "",
               *,
               service: Optional[str] = None,
               status: Optional[int] = None) -> None:
    super().__init__(message)
    self.message = message
    self.service = service
    self.status = status


class ParseError(AssistantError):
  kind: ErrorKind = "parse"


class ValidationError(AssistantError):
  kind: ErrorKind = "validation"

  def __init__(self,
               message: str,
               suggestions: Optional[List[str]] = None,
               **kwargs: Any) -> None:
    super().__init__(message, **kwargs)
    self.suggestions = list(suggestions or [])


class ConfigError(AssistantError):
  kind: ErrorKind = "config"

  def __init__(self, missing: str, **kwargs: Any) -> None:
    super().__init__(f"Missing configuration: {missing}", **kwargs)
    self.missing = missing


class AuthError(AssistantError):
  kind: ErrorKind = "auth"


class PermissionDeniedError(AssistantError):
  kind: ErrorKind = "permission"


class NotFoundError(AssistantError):
  kind: ErrorKind = "not_found"


class RateLimitError(AssistantError):
  kind: ErrorKind = "rate_limit"


class ProviderTimeoutError(AssistantError):
  kind: ErrorKind = "timeout"


class NetworkError(AssistantError):
  kind: ErrorKind = "network"


class UnknownError(AssistantError):
  kind: ErrorKind = "unknown"


_STATUS_KINDS = {
    401: AuthError,
    403: PermissionDeniedError,
    404: NotFoundError,
    408: ProviderTimeoutError,
    410: NotFoundError,
    429: RateLimitError,
    504: ProviderTimeoutError,
}

_SLACK_ERROR_KINDS = {
    "not_authed": AuthError,
    "invalid_auth": AuthError,
    "token_revoked": AuthError,
    "account_inactive": AuthError,
    "missing_scope": PermissionDeniedError,
    "not_in_channel": PermissionDeniedError,
    "restricted_action": PermissionDeniedError,
    "channel_not_found": NotFoundError,
    "user_not_found": NotFoundError,
    "ratelimited": RateLimitError,
}

# (needles, error class) checked in order against the lowered message.
_MESSAGE_RULES = [
    (("401", "unauthorized", "invalid_grant"), AuthError),
    (("403", "forbidden"), PermissionDeniedError),
    (("404", "not found"), NotFoundError),
    (("429", "rate limit", "too many requests"), RateLimitError),
    (("timeout", "timed out", "etimedout"), ProviderTimeoutError),
    (("network", "connection", "fetch", "econnrefused"), NetworkError),
]


def error_from_status(status: Optional[int],
                      message: str,
                      service: Optional[str] = None) -> AssistantError:
  cls = _STATUS_KINDS.get(status or 0, UnknownError)
  return cls(message, service=service, status=status)


def _status_of(exc: BaseException) -> Optional[int]:
  if isinstance(exc, HttpError):
    status = getattr(exc.resp, "status", None)
    try:
      return int(status) if status is not None else None
    except (TypeError, ValueError):
      return None
  status = getattr(exc, "status_code", None)
  if isinstance(status, int):
    return status
  response = getattr(exc, "response", None)
  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status
  return None


def classify_error(exc: BaseException,
                   service: Optional[str] = None) -> AssistantError:
  if isinstance(exc, AssistantError):
    if exc.service is None:
      exc.service = service
    return exc
  message = str(exc) or exc.__class__.__name__

  if isinstance(exc, (asyncio.TimeoutError, TimeoutError, requests.Timeout)):
    return ProviderTimeoutError(message, service=service)
  if isinstance(exc, requests.ConnectionError):
    return NetworkError(message, service=service)
  if isinstance(exc, SlackApiError):
    code = ""
    if exc.response is not None:
      code = str(exc.response.get("error") or "")
    cls = _SLACK_ERROR_KINDS.get(code, UnknownError)
    return cls(message, service=service)

  status = _status_of(exc)
  if status is not None:
    return error_from_status(status, message, service)

  lowered = message.lower()
  for needles, cls in _MESSAGE_RULES:
    if any(needle in lowered for needle in needles):
      return cls(message, service=service)
  return UnknownError(message, service=service)


def render_error(err: AssistantError, service: Optional[str] = None) -> str:
  name = err.service or service or "the service"

  if isinstance(err, ValidationError):
    text = f"❌ {err.message}"
    if err.suggestions:
      text += "\n\n*Try this instead:*\n" + "\n".join(
          f"• {s}" for s in err.suggestions)
    return text

  if isinstance(err, ConfigError):
    return (f"I can't access {name} because it's not configured properly.\n\n"
            f"🔧 *Missing:* {err.missing}\n"
            "Ask your admin to add the required environment variables and restart me.")

  if isinstance(err, ParseError):
    return f"❌ {err.message}"

  lead = "Sorry, something went wrong. "
  if isinstance(err, AuthError):
    lead += f"I couldn't authenticate with {name}. "
    hint = f"Check that your {name} API token is correct and hasn't expired."
  elif isinstance(err, PermissionDeniedError):
    lead += f"I don't have permission to access {name}. "
    hint = f"Your {name} API token might not have the required permissions."
  elif isinstance(err, NotFoundError):
    lead += f"Couldn't find the requested resource in {name}. "
    hint = "The workspace, project, or item might have been deleted or moved."
  elif isinstance(err, RateLimitError):
    lead += f"{name} is rate limiting our requests. "
    hint = "Try again in a few minutes."
  elif isinstance(err, ProviderTimeoutError):
    lead += f"{name} isn't responding. "
    hint = "This is usually temporary. Try again in a moment."
  elif isinstance(err, NetworkError):
    lead += f"Can't connect to {name}. "
    hint = f"Check the network or {name} service status."
  else:
    lead += f"Unexpected error with {name}. "
    return f"{lead}\n\n🔧 *Error details:* {err.message or 'unknown'}"
  return f"{lead}\n\n🔧 *Troubleshooting:* {hint}"

from __future__ import annotations

import os
import re


def _env_flag(name: str, default: str = "0") -> bool:
  return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
  raw = os.getenv(name)
  if raw is None or not raw.strip():
    return default
  try:
    return int(raw)
  except ValueError:
    return default


def _env_str(name: str, default: str = "") -> str:
  return (os.getenv(name) or default).strip()


LLM_DEBUG = os.getenv("LLM_DEBUG", "0") == "1"
LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# -------------------------
# Slack
# -------------------------
SLACK_BOT_TOKEN = _env_str("SLACK_BOT_TOKEN")
SLACK_SIGNING_SECRET = _env_str("SLACK_SIGNING_SECRET")
SLACK_APP_TOKEN = _env_str("SLACK_APP_TOKEN")
SOCKET_MODE = _env_flag("SOCKET_MODE")
PORT = _env_int("PORT", 3000)

# -------------------------
# Classifier
# -------------------------
OPENAI_API_KEY = _env_str("OPENAI_API_KEY")
ROUTER_MODEL = _env_str("ROUTER_MODEL", "gpt-4o-mini")
ROUTER_TEMPERATURE = float(os.getenv("ROUTER_TEMPERATURE", "0.2"))
AGENT_MODE = _env_flag("AGENT_MODE", "1")

# -------------------------
# Google Calendar
# -------------------------
GOOGLE_SERVICE_ACCOUNT_JSON = _env_str("GOOGLE_SERVICE_ACCOUNT_JSON")
GOOGLE_CLIENT_EMAIL = _env_str("GOOGLE_CLIENT_EMAIL")
GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")
GOOGLE_PROJECT_ID = _env_str("GOOGLE_PROJECT_ID")
GOOGLE_TOKEN_FILE = _env_str("GOOGLE_TOKEN_FILE")
GOOGLE_CALENDAR_ID = _env_str("GOOGLE_CALENDAR_ID", "primary")
GOOGLE_CALENDAR_EMAIL = _env_str("GOOGLE_CALENDAR_EMAIL")
GOOGLE_DELEGATED_USER = _env_str("GOOGLE_DELEGATED_USER")
GCAL_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

# -------------------------
# Asana / Toggl / SavvyCal
# -------------------------
ASANA_API_TOKEN = _env_str("ASANA_API_TOKEN")
ASANA_WORKSPACE_ID = _env_str("ASANA_WORKSPACE_ID")
ASANA_BASE_URL = "https://app.asana.com/api/1.0"

TOGGL_API_TOKEN = _env_str("TOGGL_API_TOKEN")
TOGGL_WORKSPACE_ID = _env_str("TOGGL_WORKSPACE_ID")
TOGGL_BASE_URL = "https://api.track.toggl.com/api/v9"

SAVVYCAL_TOKEN = _env_str("SAVVYCAL_TOKEN")
SAVVYCAL_SCOPE_SLUG = _env_str("SAVVYCAL_SCOPE_SLUG")
SAVVYCAL_BASE_URL = "https://api.savvycal.com/v1"

# -------------------------
# Runtime limits / defaults
# -------------------------
DEFAULT_TIMEZONE = _env_str("DEFAULT_TIMEZONE", "America/New_York")
TIMEZONE_TTL_SECONDS = _env_int("TIMEZONE_TTL_SECONDS", 24 * 60 * 60)
THREAD_ACTIVE_SECONDS = _env_int("THREAD_ACTIVE_SECONDS", 24 * 60 * 60)
API_CACHE_SECONDS = _env_int("API_CACHE_SECONDS", 5 * 60)
CACHE_RETENTION_SECONDS = _env_int("CACHE_RETENTION_SECONDS", 60 * 60)
CACHE_SWEEP_INTERVAL_SECONDS = _env_int("CACHE_SWEEP_INTERVAL_SECONDS", 60 * 60)
PROVIDER_TIMEOUT_SECONDS = _env_int("PROVIDER_TIMEOUT_SECONDS", 15)
HTTP_TIMEOUT_SECONDS = _env_int("HTTP_TIMEOUT_SECONDS", 20)
REQUEST_TIMEOUT_SECONDS = _env_int("REQUEST_TIMEOUT_SECONDS", 90)

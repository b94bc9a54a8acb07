from __future__ import annotations

import json
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import (
    GCAL_SCOPES,
    GOOGLE_CALENDAR_EMAIL,
    GOOGLE_CALENDAR_ID,
    GOOGLE_CLIENT_EMAIL,
    GOOGLE_DELEGATED_USER,
    GOOGLE_PRIVATE_KEY,
    GOOGLE_PROJECT_ID,
    GOOGLE_SERVICE_ACCOUNT_JSON,
    GOOGLE_TOKEN_FILE,
    API_CACHE_SECONDS,
)
from .errors import ConfigError, error_from_status
from .models import NormalizedEvent
from .stores import TtlCache
from .utils import _log_debug

logger = logging.getLogger(__name__)

SERVICE = "Google Calendar"

_MEETING_LINK_RE = re.compile(
    r"(https?://[^\s]*(?:zoom\.us|meet\.google\.com|teams\.microsoft\.com|webex\.com)[^\s]*)",
    re.IGNORECASE)


def load_service_account_info() -> Optional[Dict[str, Any]]:
  if GOOGLE_SERVICE_ACCOUNT_JSON:
    try:
      info = json.loads(GOOGLE_SERVICE_ACCOUNT_JSON)
    except ValueError:
      logger.error("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON")
      return None
    return info if isinstance(info, dict) else None
  if GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY:
    return {
        "type": "service_account",
        "client_email": GOOGLE_CLIENT_EMAIL,
        "private_key": GOOGLE_PRIVATE_KEY,
        "project_id": GOOGLE_PROJECT_ID,
        "token_uri": "https://oauth2.googleapis.com/token",
    }
  return None


def is_meeting_link(value: Optional[str]) -> bool:
  return bool(value and _MEETING_LINK_RE.search(value))


def extract_meeting_link(raw: Dict[str, Any]) -> Optional[str]:
  conference = raw.get("conferenceData") or {}
  for entry in conference.get("entryPoints") or []:
    if isinstance(entry, dict) and entry.get("entryPointType") == "video" and entry.get("uri"):
      return entry["uri"]
  if raw.get("hangoutLink"):
    return raw["hangoutLink"]
  location = raw.get("location")
  if is_meeting_link(location):
    return location
  match = _MEETING_LINK_RE.search(raw.get("description") or "")
  return match.group(1) if match else None


def _event_time(obj: Dict[str, Any]) -> Optional[datetime]:
  value = obj.get("dateTime") or obj.get("date")
  if not value:
    return None
  return date_parser.isoparse(value)


def normalize_event(raw: Dict[str, Any], self_email: str = GOOGLE_CALENDAR_EMAIL) -> Optional[NormalizedEvent]:
  start_raw = raw.get("start") or {}
  start = _event_time(start_raw)
  if start is None:
    return None
  attendees: List[str] = []
  names: List[str] = []
  for item in raw.get("attendees") or []:
    if not isinstance(item, dict) or not item.get("email"):
      continue
    email = item["email"].strip()
    attendees.append(email)
    if item.get("self") or (self_email and email.lower() == self_email.lower()):
      continue
    names.append(item.get("displayName") or email.split("@")[0])
  return NormalizedEvent(
      id=raw.get("id") or "",
      title=raw.get("summary") or "Untitled Event",
      start=start,
      end=_event_time(raw.get("end") or {}),
      all_day="dateTime" not in start_raw,
      location=raw.get("location"),
      description=raw.get("description"),
      attendees=attendees,
      attendee_names=names,
      meeting_url=extract_meeting_link(raw),
      raw=raw,
  )


def _iso_z(value: datetime) -> str:
  return value.isoformat().replace("+00:00", "Z")


class GoogleCalendarClient:
  """Calendar provider over the Calendar v3 API.

  Credentials come from a service account (optionally delegated to a user) or
  from an authorized-user token file. A service account without delegation
  cannot invite attendees; ``supports_attendees`` reports that up front.
  """

  def __init__(self,
               cache: Optional[TtlCache] = None,
               calendar_id: str = GOOGLE_CALENDAR_ID,
               service_account_info: Optional[Dict[str, Any]] = None,
               token_file: str = GOOGLE_TOKEN_FILE,
               delegated_user: str = GOOGLE_DELEGATED_USER,
               service: Any = None) -> None:
    self.cache = cache if cache is not None else TtlCache()
    self.calendar_id = calendar_id or "primary"
    self.service_account_info = (service_account_info if service_account_info is not None
                                 else load_service_account_info())
    self.token_file = token_file
    self.delegated_user = delegated_user or None
    self._service = service

  @property
  def configured(self) -> bool:
    return bool(self._service is not None or self.service_account_info or self.token_file)

  @property
  def supports_attendees(self) -> bool:
    if self.service_account_info and not self.token_file:
      return bool(self.delegated_user)
    return self.configured

  def _credentials(self):
    if self.service_account_info:
      creds = service_account.Credentials.from_service_account_info(
          self.service_account_info, scopes=GCAL_SCOPES)
      if self.delegated_user:
        creds = creds.with_subject(self.delegated_user)
      return creds
    creds = Credentials.from_authorized_user_file(self.token_file, GCAL_SCOPES)
    if creds.expired and creds.refresh_token:
      creds.refresh(GoogleRequest())
    return creds

  def service(self):
    if self._service is None:
      if not self.configured:
        raise ConfigError("GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_TOKEN_FILE", service=SERVICE)
      self._service = build("calendar", "v3", credentials=self._credentials(),
                            cache_discovery=False)
    return self._service

  def _execute(self, request: Any, action: str) -> Any:
    try:
      return request.execute()
    except HttpError as exc:
      status = getattr(exc.resp, "status", None)
      logger.warning("Google Calendar %s failed: %s", action, exc)
      raise error_from_status(int(status) if status else None,
                              f"Failed to {action}: {exc}", SERVICE) from exc

  def get_events(self,
                 time_min: datetime,
                 time_max: Optional[datetime] = None,
                 max_results: int = 50) -> List[NormalizedEvent]:
    key = (SERVICE, "events", self.calendar_id, _iso_z(time_min),
           _iso_z(time_max) if time_max else None, max_results)
    stored = self.cache.get(key, max_age=API_CACHE_SECONDS)
    if stored is None:
      params: Dict[str, Any] = {
          "calendarId": self.calendar_id,
          "timeMin": _iso_z(time_min),
          "maxResults": max_results,
          "singleEvents": True,
          "orderBy": "startTime",
      }
      if time_max is not None:
        params["timeMax"] = _iso_z(time_max)
      _log_debug(f"[GCAL] list {params}")
      result = self._execute(self.service().events().list(**params), "fetch calendar events")
      stored = result.get("items") or []
      self.cache.set(key, stored)
    events = [normalize_event(item) for item in stored if item.get("status") != "cancelled"]
    return [ev for ev in events if ev is not None]

  def next_event(self,
                 after: datetime,
                 until: Optional[datetime] = None,
                 max_results: int = 5) -> Optional[NormalizedEvent]:
    """First timed event starting at or after ``after`` (within a week by default)."""
    events = self.get_events(after, until or after + timedelta(days=7), max_results=max_results)
    upcoming = [ev for ev in events if not ev.all_day and ev.start >= after]
    return upcoming[0] if upcoming else None

  def create_event(self,
                   title: str,
                   start: datetime,
                   end: datetime,
                   time_zone: str,
                   description: str = "",
                   location: str = "",
                   attendees: Optional[List[str]] = None,
                   meeting_type: Optional[str] = None) -> NormalizedEvent:
    body: Dict[str, Any] = {
        "summary": title,
        "description": description or "",
        "location": location or "",
        "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
        "reminders": {"useDefault": True},
    }
    if attendees and self.supports_attendees:
      body["attendees"] = [{"email": email} for email in attendees]
    if meeting_type == "google-meet":
      body["conferenceData"] = {
          "createRequest": {
              "requestId": secrets.token_hex(8),
              "conferenceSolutionKey": {"type": "hangoutsMeet"},
          }
      }
    request = self.service().events().insert(
        calendarId=self.calendar_id,
        body=body,
        conferenceDataVersion=1 if meeting_type == "google-meet" else 0,
        sendUpdates="all" if body.get("attendees") else "none",
    )
    created = self._execute(request, "create calendar event")
    self.cache.clear(SERVICE)
    event = normalize_event(created)
    if event is None:
      raise error_from_status(None, "Calendar returned an event without a start time", SERVICE)
    return event

  def update_event(self, event_id: str, fields: Dict[str, Any]) -> NormalizedEvent:
    updated = self._execute(
        self.service().events().patch(calendarId=self.calendar_id, eventId=event_id,
                                      body=fields),
        "update calendar event")
    self.cache.clear(SERVICE)
    event = normalize_event(updated)
    if event is None:
      raise error_from_status(None, "Calendar returned an event without a start time", SERVICE)
    return event

  def delete_event(self, event_id: str) -> None:
    self._execute(
        self.service().events().delete(calendarId=self.calendar_id, eventId=event_id),
        "delete calendar event")
    self.cache.clear(SERVICE)

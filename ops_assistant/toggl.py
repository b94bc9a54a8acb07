from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from dateutil import parser as date_parser

from .config import TOGGL_API_TOKEN, TOGGL_BASE_URL, TOGGL_WORKSPACE_ID
from .errors import ConfigError
from .http_client import JsonApiClient
from .models import NamedItem, TimeEntry
from .stores import TtlCache
from .utils import find_by_name

logger = logging.getLogger(__name__)

CREATED_WITH = "ops-assistant"


def _iso_z(value: datetime) -> str:
  return value.isoformat().replace("+00:00", "Z")


def normalize_entry(raw: Dict[str, Any]) -> TimeEntry:
  duration = int(raw.get("duration") or 0)
  start = date_parser.isoparse(raw["start"])
  if duration < 0:
    # A running entry stores -start_epoch; count it up to now.
    duration = max(int(datetime.now(start.tzinfo).timestamp()) + duration, 0)
  return TimeEntry(id=str(raw.get("id")) if raw.get("id") is not None else None,
                   project_id=str(raw["project_id"]) if raw.get("project_id") else None,
                   description=raw.get("description") or "",
                   start=start,
                   duration_seconds=duration)


class TogglClient(JsonApiClient):
  service = "Toggl"

  def __init__(self,
               token: str = TOGGL_API_TOKEN,
               workspace_id: str = TOGGL_WORKSPACE_ID,
               cache: Optional[TtlCache] = None,
               session: Optional[requests.Session] = None,
               base_url: str = TOGGL_BASE_URL) -> None:
    super().__init__(base_url, cache=cache, session=session)
    self.token = token
    self.workspace_id = workspace_id or None

  def auth(self):
    if not self.token:
      raise ConfigError("TOGGL_API_TOKEN", service=self.service)
    return {}, (self.token, "api_token")

  def get_workspaces(self) -> List[NamedItem]:
    stored = self.cached("workspaces", 3600)
    if stored is None:
      stored = self.remember("workspaces", self.request("GET", "/workspaces") or [])
    workspaces = [NamedItem(id=str(w.get("id")), name=w.get("name") or "") for w in stored]
    if not self.workspace_id and workspaces:
      self.workspace_id = workspaces[0].id
      logger.info("Using Toggl workspace %s (%s)", workspaces[0].name, self.workspace_id)
    return workspaces

  def _workspace(self) -> str:
    if not self.workspace_id:
      self.get_workspaces()
    if not self.workspace_id:
      raise ConfigError("TOGGL_WORKSPACE_ID", service=self.service)
    return self.workspace_id

  def get_projects(self) -> List[NamedItem]:
    workspace = self._workspace()
    key = ("projects", workspace)
    stored = self.cached(key, 1800)
    if stored is None:
      stored = self.remember(key, self.request("GET", f"/workspaces/{workspace}/projects") or [])
    return [NamedItem(id=str(p.get("id")), name=p.get("name") or "") for p in stored]

  def find_project(self, name: str) -> Optional[NamedItem]:
    return find_by_name(self.get_projects(), name, lambda p: p.name)

  def get_time_entries(self,
                       start: datetime,
                       end: datetime,
                       project_id: Optional[str] = None) -> List[TimeEntry]:
    raw = self.request("GET", "/me/time_entries",
                       params={"start_date": _iso_z(start), "end_date": _iso_z(end)}) or []
    entries = [normalize_entry(e) for e in raw if isinstance(e, dict) and e.get("start")]
    if project_id:
      entries = [e for e in entries if e.project_id == str(project_id)]
    return entries

  def log_time(self,
               project_id: str,
               start: datetime,
               duration_seconds: int,
               description: str = "") -> TimeEntry:
    workspace = self._workspace()
    body = {
        "description": description or "",
        "project_id": int(project_id) if str(project_id).isdigit() else project_id,
        "start": _iso_z(start),
        "duration": int(duration_seconds),
        "tags": [],
        "workspace_id": int(workspace) if str(workspace).isdigit() else workspace,
        "created_with": CREATED_WITH,
    }
    created = self.request("POST", f"/workspaces/{workspace}/time_entries", json=body)
    self.invalidate()
    return normalize_entry(created)

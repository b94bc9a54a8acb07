from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import requests

from .config import ASANA_API_TOKEN, ASANA_BASE_URL, ASANA_WORKSPACE_ID
from .errors import ConfigError
from .http_client import JsonApiClient
from .models import NamedItem, NormalizedTask, ProjectRef, TaskFilter
from .stores import TtlCache
from .utils import find_by_name

logger = logging.getLogger(__name__)

_TASK_FIELDS = ("name,notes,completed,due_on,due_at,projects.name,assignee.name,"
                "permalink_url,modified_at")
_PAGE_SIZE = 100


def normalize_task(raw: Dict[str, Any]) -> NormalizedTask:
  due = raw.get("due_on")
  if not due and isinstance(raw.get("due_at"), str):
    due = raw["due_at"][:10]
  projects = [
      ProjectRef(id=p.get("gid"), name=p.get("name") or "Untitled project")
      for p in (raw.get("projects") or [])
      if isinstance(p, dict)
  ]
  assignee = raw.get("assignee") or {}
  return NormalizedTask(
      id=str(raw.get("gid") or raw.get("id") or ""),
      title=raw.get("name") or "(untitled task)",
      due_date=date.fromisoformat(due) if due else None,
      completed=bool(raw.get("completed")),
      notes=raw.get("notes") or None,
      projects=projects,
      assignee=assignee.get("name") if isinstance(assignee, dict) else None,
      permalink_url=raw.get("permalink_url"),
      raw=raw,
  )


class AsanaClient(JsonApiClient):
  service = "Asana"

  def __init__(self,
               token: str = ASANA_API_TOKEN,
               workspace_id: str = ASANA_WORKSPACE_ID,
               cache: Optional[TtlCache] = None,
               session: Optional[requests.Session] = None,
               base_url: str = ASANA_BASE_URL) -> None:
    super().__init__(base_url, cache=cache, session=session)
    self.token = token
    self.workspace_id = workspace_id or None

  def auth(self):
    if not self.token:
      raise ConfigError("ASANA_API_TOKEN", service=self.service)
    return {"Authorization": f"Bearer {self.token}"}, None

  # -------------------------
  # Workspaces / projects
  # -------------------------
  def get_workspaces(self) -> List[NamedItem]:
    stored = self.cached("workspaces", 3600)
    if stored is None:
      stored = self.remember("workspaces", self.request("GET", "/workspaces").get("data") or [])
    workspaces = [NamedItem(id=str(w.get("gid")), name=w.get("name") or "") for w in stored]
    if not self.workspace_id and workspaces:
      self.workspace_id = workspaces[0].id
      logger.info("Using Asana workspace %s (%s)", workspaces[0].name, self.workspace_id)
    return workspaces

  def _workspace(self) -> str:
    if not self.workspace_id:
      self.get_workspaces()
    if not self.workspace_id:
      raise ConfigError("ASANA_WORKSPACE_ID", service=self.service)
    return self.workspace_id

  def get_me(self) -> Dict[str, Any]:
    stored = self.cached("me", 3600)
    if stored is None:
      stored = self.remember("me", self.request("GET", "/users/me").get("data") or {})
    return stored

  def get_projects(self) -> List[NamedItem]:
    workspace = self._workspace()
    key = ("projects", workspace)
    stored = self.cached(key, 1800)
    if stored is None:
      data = self.request("GET", "/projects",
                          params={"workspace": workspace,
                                  "opt_fields": "name,archived,owner.name"}).get("data") or []
      stored = self.remember(key, [p for p in data if not p.get("archived")])
    return [
        NamedItem(id=str(p.get("gid")),
                  name=p.get("name") or "",
                  owner=(p.get("owner") or {}).get("name"))
        for p in stored
    ]

  def find_project(self, name: str) -> Optional[NamedItem]:
    return find_by_name(self.get_projects(), name, lambda p: p.name)

  # -------------------------
  # Tasks
  # -------------------------
  def get_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[NormalizedTask]:
    """Fetch tasks assigned to the token's user, following pagination.

    The due-date bounds of ``task_filter`` are applied here on the normalized
    tasks, so the result is exact regardless of how the API treats them.
    """
    flt = task_filter or TaskFilter()
    params: Dict[str, Any] = {"opt_fields": _TASK_FIELDS, "limit": min(flt.limit, _PAGE_SIZE)}
    if flt.project_id:
      params["project"] = flt.project_id
    else:
      params["assignee"] = "me"
      params["workspace"] = self._workspace()
    if flt.incomplete_only:
      params["completed_since"] = "now"

    raw_tasks: List[Dict[str, Any]] = []
    offset: Optional[str] = None
    while len(raw_tasks) < flt.limit:
      if offset:
        params["offset"] = offset
      result = self.request("GET", "/tasks", params=params)
      raw_tasks.extend(result.get("data") or [])
      offset = (result.get("next_page") or {}).get("offset")
      if not offset:
        break

    tasks = [normalize_task(t) for t in raw_tasks[:flt.limit]]
    return [t for t in tasks if _matches(t, flt)]

  def tasks_due_between(self, start: date, end: date) -> List[NormalizedTask]:
    """Incomplete tasks whose due date falls in ``[start, end]``."""
    return self.get_tasks(TaskFilter(due_after=start, due_before=end, require_due_date=True))

  def overdue_tasks(self, today: date) -> List[NormalizedTask]:
    return self.get_tasks(
        TaskFilter(due_before=today - timedelta(days=1), require_due_date=True))

  def create_task(self,
                  name: str,
                  notes: str = "",
                  due_on: Optional[date] = None,
                  project_ids: Optional[List[str]] = None) -> NormalizedTask:
    data: Dict[str, Any] = {
        "name": name,
        "notes": notes or "",
        "workspace": self._workspace(),
        "projects": list(project_ids or []),
    }
    me = self.get_me()
    if me.get("gid"):
      data["assignee"] = me["gid"]
    if due_on:
      data["due_on"] = due_on.isoformat()
    result = self.request("POST", "/tasks", json={"data": data})
    self.invalidate()
    return normalize_task(result.get("data") or {})

  def update_task(self, task_id: str, updates: Dict[str, Any]) -> NormalizedTask:
    result = self.request("PUT", f"/tasks/{task_id}", json={"data": updates})
    self.invalidate()
    return normalize_task(result.get("data") or {})

  def complete_task(self, task_id: str) -> NormalizedTask:
    return self.update_task(task_id, {"completed": True})


def _matches(task: NormalizedTask, flt: TaskFilter) -> bool:
  if flt.incomplete_only and task.completed:
    return False
  due = task.due_date
  if due is None:
    return not (flt.require_due_date or flt.due_on or flt.due_after or flt.due_before)
  if flt.due_on and due != flt.due_on:
    return False
  if flt.due_after and due < flt.due_after:
    return False
  if flt.due_before and due > flt.due_before:
    return False
  return True

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import SAVVYCAL_BASE_URL, SAVVYCAL_SCOPE_SLUG, SAVVYCAL_TOKEN
from .errors import ConfigError, ValidationError
from .http_client import JsonApiClient
from .models import SchedulingLink
from .stores import TtlCache
from .utils import _coerce_int

logger = logging.getLogger(__name__)

VALID_DURATIONS = (15, 30, 45, 60, 90, 120)
PUBLIC_BASE_URL = "https://savvycal.com"


def validate_duration(minutes: Any) -> int:
  """Snap a minute count to the nearest bookable duration (ties go low)."""
  value = _coerce_int(minutes)
  if value is None or value < 1:
    raise ValidationError("Duration must be a valid number of minutes.",
                          suggestions=['schedule "Meeting with John" 30'])
  return min(VALID_DURATIONS, key=lambda d: (abs(d - value), d))


def link_title(description: Optional[str], minutes: int) -> str:
  if description and description.strip():
    return description.strip()
  return f"{minutes} Minute Meeting"


class SavvyCalClient(JsonApiClient):
  service = "SavvyCal"

  def __init__(self,
               token: str = SAVVYCAL_TOKEN,
               scope_slug: str = SAVVYCAL_SCOPE_SLUG,
               cache: Optional[TtlCache] = None,
               session: Optional[requests.Session] = None,
               base_url: str = SAVVYCAL_BASE_URL) -> None:
    super().__init__(base_url, cache=cache, session=session)
    self.token = token
    self.scope_slug = scope_slug or None

  def auth(self):
    if not self.token:
      raise ConfigError("SAVVYCAL_TOKEN", service=self.service)
    return {"Authorization": f"Bearer {self.token}"}, None

  def build_url(self, link: Dict[str, Any]) -> str:
    if link.get("url"):
      return link["url"]
    slug = str(link.get("slug") or link.get("id") or "")
    if "/" in slug or not self.scope_slug:
      return f"{PUBLIC_BASE_URL}/{slug}"
    return f"{PUBLIC_BASE_URL}/{self.scope_slug}/{slug}"

  def _normalize(self, raw: Dict[str, Any]) -> SchedulingLink:
    link = raw.get("link") if isinstance(raw.get("link"), dict) else raw
    if "enabled" in link:
      enabled = bool(link["enabled"])
    else:
      enabled = link.get("state", "active") != "disabled"
    return SchedulingLink(id=str(link.get("id") or ""),
                          name=link.get("name") or "",
                          url=self.build_url(link),
                          enabled=enabled,
                          description=link.get("description"),
                          durations=[int(d) for d in link.get("durations") or []],
                          default_duration=link.get("default_duration"))

  def _links_path(self) -> str:
    return f"/scopes/{self.scope_slug}/links" if self.scope_slug else "/links"

  def create_single_use_link(self, title: str, minutes: int) -> SchedulingLink:
    """Create a single-use link, then pin its bookable duration."""
    created = self.request("POST", self._links_path(),
                           json={"name": title, "type": "single",
                                 "description": f"{minutes} min"})
    link = self._normalize(created)
    self.request("PATCH", f"/links/{link.id}",
                 json={"durations": [minutes], "default_duration": minutes})
    self.invalidate()
    logger.info("Created SavvyCal link %s (%s min)", link.id, minutes)
    return link.model_copy(update={"durations": [minutes], "default_duration": minutes})

  def toggle_link(self, link_id: str) -> None:
    self.request("POST", f"/links/{link_id}/toggle")
    self.invalidate()

  def get_link(self, link_id: str) -> SchedulingLink:
    return self._normalize(self.request("GET", f"/links/{link_id}"))

  def get_links(self) -> List[SchedulingLink]:
    data = self.request("GET", self._links_path())
    if isinstance(data, dict):
      items = data.get("links") or data.get("entries") or []
    else:
      items = data or []
    return [self._normalize(item) for item in items if isinstance(item, dict)]

  def delete_link(self, link_id: str) -> None:
    self.request("DELETE", f"/links/{link_id}")
    self.invalidate()

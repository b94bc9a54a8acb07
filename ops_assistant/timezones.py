from __future__ import annotations

import logging
from typing import Any, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import DEFAULT_TIMEZONE, TIMEZONE_TTL_SECONDS
from .models import UserTimezoneRecord
from .stores import TtlCache
from .utils import _log_debug

logger = logging.getLogger(__name__)


class IdentityService(Protocol):

  async def get_user_timezone(self, user_id: str) -> Optional[str]:
    ...


def is_valid_timezone(name: Any) -> bool:
  if not isinstance(name, str) or not name.strip():
    return False
  try:
    ZoneInfo(name.strip())
  except (ZoneInfoNotFoundError, ValueError):
    return False
  return True


class TimezoneResolver:
  """Per-user IANA zone with a TTL cache; falls back to a default zone."""

  def __init__(self,
               identity: Optional[IdentityService],
               cache: TtlCache,
               default_zone: str = DEFAULT_TIMEZONE,
               ttl_seconds: float = TIMEZONE_TTL_SECONDS) -> None:
    self.identity = identity
    self.cache = cache
    self.default_zone = default_zone if is_valid_timezone(default_zone) else "UTC"
    self.ttl_seconds = ttl_seconds

  def cached(self, user_id: str) -> Optional[UserTimezoneRecord]:
    stored = self.cache.get(("tz", user_id), max_age=self.ttl_seconds)
    if not isinstance(stored, dict):
      return None
    return UserTimezoneRecord(**stored)

  async def resolve(self, user_id: Optional[str]) -> str:
    if not user_id:
      return self.default_zone
    record = self.cached(user_id)
    if record is not None:
      return record.iana_zone
    if self.identity is None:
      return self.default_zone

    try:
      zone = await self.identity.get_user_timezone(user_id)
    except Exception:
      logger.warning("Timezone lookup failed for user %s; using %s",
                     user_id, self.default_zone, exc_info=True)
      return self.default_zone

    if not is_valid_timezone(zone):
      logger.warning("Invalid timezone %r for user %s; using %s",
                     zone, user_id, self.default_zone)
      return self.default_zone

    zone = zone.strip()
    self.cache.set(("tz", user_id),
                   UserTimezoneRecord(user_id=user_id,
                                      iana_zone=zone,
                                      resolved_at=self.cache.now()).model_dump())
    _log_debug(f"[tz] {user_id} -> {zone}")
    return zone

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..temporal import normalize_period
from ..utils import _clean_optional_str
from .schemas import ClassifiedIntent

LINK_INTENTS = ("disable_link", "delete_link", "get_link")

# Names the model tends to emit for intents we already cover.
_INTENT_ALIASES = {
    "general_query": "general_chat",
    "casual_chat": "general_chat",
    "chat": "general_chat",
    "rundown": "daily_rundown",
    "morning_briefing": "daily_rundown",
    "schedule_meeting": "create_meeting",
    "mark_complete": "complete_task",
}


def _clean_slot(value: Any) -> Any:
  if value is None or isinstance(value, (bool, int, float)):
    return value
  if isinstance(value, str):
    return value.strip()
  if isinstance(value, (list, tuple)):
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
  return None


def _clean_slots(raw: Any) -> Dict[str, Any]:
  if not isinstance(raw, dict):
    return {}
  slots: Dict[str, Any] = {}
  for key, value in raw.items():
    if not isinstance(key, str):
      continue
    cleaned = _clean_slot(value)
    if cleaned is None or cleaned == "" or cleaned == []:
      continue
    slots[key] = cleaned
  return slots


def _missing_list(raw: Any) -> List[str]:
  if raw is None:
    return []
  if isinstance(raw, str):
    return [raw.strip()] if raw.strip() else []
  if isinstance(raw, list):
    return [str(v).strip() for v in raw if isinstance(v, (str, int)) and str(v).strip()]
  return []


def normalize_classifier_output(raw: Any,
                                context: Optional[Dict[str, Any]] = None) -> ClassifiedIntent:
  """Coerce a loosely-shaped classifier payload into a ``ClassifiedIntent``."""
  ctx = context or {}
  data = raw if isinstance(raw, dict) else {}

  name = _clean_optional_str(data.get("intent") or data.get("name")) or ""
  name = _INTENT_ALIASES.get(name, name)
  slots = _clean_slots(data.get("slots"))
  missing = _missing_list(data.get("missing", data.get("missing_questions")))
  response = _clean_optional_str(data.get("response")) or ""

  if "period" in slots and isinstance(slots["period"], str):
    slots["period"] = normalize_period(slots["period"])

  last_link_id = _clean_optional_str(ctx.get("last_link_id"))
  if name in LINK_INTENTS and not slots.get("link_id") and last_link_id:
    slots["link_id"] = last_link_id
    missing = []

  return ClassifiedIntent(name=name, slots=slots, missing_questions=missing, response=response)

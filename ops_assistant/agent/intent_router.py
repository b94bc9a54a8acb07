from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from ..config import DEFAULT_TIMEZONE, OPENAI_API_KEY, ROUTER_MODEL, ROUTER_TEMPERATURE
from ..utils import _log_debug, utc_now
from .normalizer import normalize_classifier_output
from .schemas import ClassifiedIntent

logger = logging.getLogger(__name__)

UNAVAILABLE_QUESTION = 'AI assistant unavailable. Try basic commands like: schedule "Meeting" 30'
REPHRASE_QUESTION = "Sorry, having trouble understanding. Could you rephrase?"

INTENT_ROUTER_SYSTEM_PROMPT = """You are an operations assistant living in Slack. You are confident,
quick, warm and direct, with a light touch of wit. Work requests get efficient, precise handling;
small talk gets a personable reply.

Output STRICT JSON only (no backticks, no prose):
{"intent": "...", "slots": {...}, "missing": [], "response": "..."}

Valid intents and their slots:
SCHEDULING LINKS
- "schedule_oneoff" -> {"title": string, "minutes": 15|30|45|60|90|120}
- "disable_link" | "delete_link" | "get_link" -> {"link_id": string}
- "list_links" -> {}
TIME TRACKING
- "log_time" -> {"project": string, "duration": string|number, "start_time": string?, "date": string?, "description": string?}
- "query_time" -> {"project": string?, "period": string}
CALENDAR
- "check_calendar" -> {"date": string?, "period": string?}
- "next_meeting" -> {}
- "create_meeting" -> {"title": string, "date": string, "start_time": string, "duration": number?, "attendees": [string]?, "location": string?, "description": string?, "meeting_type": "google-meet"|"zoom"|"none"?}
- "block_time" -> {"title": string, "date": string, "start_time": string, "end_time": string?, "duration": number?}
- "update_meeting" -> {"event_id": string, "field": string, "value": string}
- "delete_meeting" -> {"event_id": string}
TASKS
- "list_tasks" -> {"project": string?, "due_date": string?, "status": string?}
- "list_projects" -> {}
- "debug_tasks" -> {"project": string?}
- "create_task" -> {"name": string, "project": string?, "due_date": string?, "notes": string?}
- "update_task" -> {"task_id": string, "field": string, "value": string}
- "complete_task" -> {"task_id": string}
RUNDOWN
- "daily_rundown" -> {"period": string?}
GENERAL
- "general_chat" -> {"message": string?} and put your conversational reply in "response"

Rules:
- Work requests: set intent and slots, leave "response" empty.
- Pep talks, jokes, advice, small talk: "general_chat" with a reply in "response".
- If you cannot determine the intent, set intent "" and put one question in "missing".
- Time periods: today, yesterday, this week, last week, this month, last month, this year, last year, year to date.
- Keep dates and times as the user wrote them ("tomorrow", "friday", "2:30pm").
- For link intents, if context.last_link_id exists and no id is given, use it.

Common patterns:
- "what projects are available" / "show me projects" -> list_projects
- "what tasks do I have" / "tasks due today" -> list_tasks
- "daily rundown" / "what's on deck" / "morning briefing" -> daily_rundown
- "what's my next meeting" -> next_meeting
"""

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
  cleaned = _FENCE_RE.sub("", (text or "").strip()).strip()
  candidates = [cleaned]
  left, right = cleaned.find("{"), cleaned.rfind("}")
  if left != -1 and right > left:
    candidates.append(cleaned[left:right + 1])
  for candidate in candidates:
    try:
      value = json.loads(candidate)
    except ValueError:
      continue
    if isinstance(value, dict):
      return value
  return None


def clarification(question: str) -> ClassifiedIntent:
  return ClassifiedIntent(name="", slots={}, missing_questions=[question])


class IntentClassifier:
  """Chat-completions classifier in JSON mode, with a clarification fallback."""

  def __init__(self,
               client: Optional[AsyncOpenAI] = None,
               model: str = ROUTER_MODEL,
               temperature: float = ROUTER_TEMPERATURE,
               api_key: str = OPENAI_API_KEY) -> None:
    if client is None and api_key:
      client = AsyncOpenAI(api_key=api_key)
    if client is None:
      logger.warning("OPENAI_API_KEY missing; intent classification disabled")
    self.client = client
    self.model = model
    self.temperature = temperature

  @property
  def available(self) -> bool:
    return self.client is not None

  async def classify(self, text: str, context: Optional[Dict[str, Any]] = None) -> ClassifiedIntent:
    ctx = context or {}
    if self.client is None:
      return clarification(UNAVAILABLE_QUESTION)

    payload = {
        "text": text,
        "context": {
            "last_link_id": ctx.get("last_link_id"),
            "last_action": ctx.get("last_action"),
            "user_timezone": ctx.get("timezone") or DEFAULT_TIMEZONE,
            "current_time": utc_now().isoformat(),
        },
    }
    try:
      completion = await self.client.chat.completions.create(
          model=self.model,
          messages=[
              {"role": "system", "content": INTENT_ROUTER_SYSTEM_PROMPT},
              {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
          ],
          temperature=self.temperature,
          response_format={"type": "json_object"},
      )
      raw_output = completion.choices[0].message.content or "{}"
    except Exception:
      logger.exception("Intent classification request failed")
      return clarification(REPHRASE_QUESTION)

    _log_debug(f"[INTENT_ROUTER] raw={raw_output}")
    parsed = _parse_json_object(raw_output)
    if parsed is None:
      logger.warning("Classifier returned non-JSON output: %r", raw_output[:200])
      return clarification(REPHRASE_QUESTION)
    return normalize_classifier_output(parsed, ctx)

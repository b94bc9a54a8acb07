from __future__ import annotations

from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError

SlotValue = Union[str, int, float, bool, List[str], None]


# ---------------------------------------------------------------------------
#  Classifier output
# ---------------------------------------------------------------------------

class ClassifiedIntent(BaseModel):
  """Untrusted classifier result; consumed once by the dispatcher."""
  model_config = ConfigDict(extra="ignore")

  name: str = ""
  slots: Dict[str, SlotValue] = Field(default_factory=dict)
  missing_questions: List[str] = Field(default_factory=list)
  response: str = ""

  @field_validator("missing_questions", mode="before")
  @classmethod
  def _coerce_missing(cls, value: Any) -> List[str]:
    if value is None:
      return []
    if isinstance(value, str):
      return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
      return [str(v) for v in value if isinstance(v, (str, int)) and str(v).strip()]
    return []


# ---------------------------------------------------------------------------
#  Per-intent slot schemas
# ---------------------------------------------------------------------------

class _Slots(BaseModel):
  model_config = ConfigDict(extra="ignore")

  required_slots: ClassVar[Tuple[str, ...]] = ()
  examples: ClassVar[Tuple[str, ...]] = ()

  def missing_slots(self) -> List[str]:
    missing: List[str] = []
    for name in self.required_slots:
      value = getattr(self, name, None)
      if value is None or (isinstance(value, str) and not value.strip()):
        missing.append(name)
    return missing


def _blank_to_none(value: Any) -> Any:
  if isinstance(value, str) and not value.strip():
    return None
  return value


class _TextSlots(_Slots):

  @model_validator(mode="before")
  @classmethod
  def _strip_blank(cls, data: Any) -> Any:
    # The discriminator keeps its literal value.
    if not isinstance(data, dict):
      return data
    return {k: v if k == "intent" else _blank_to_none(v) for k, v in data.items()}


class ScheduleOneoffSlots(_TextSlots):
  intent: Literal["schedule_oneoff"] = "schedule_oneoff"
  title: Optional[str] = None
  minutes: Optional[int] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("title", "minutes")
  examples: ClassVar[Tuple[str, ...]] = ('schedule "Meeting with John" 30',
                                         'schedule "Project sync" 45')

  @field_validator("minutes", mode="before")
  @classmethod
  def _minutes(cls, value: Any) -> Any:
    if isinstance(value, str):
      digits = value.strip().split(" ")[0]
      return digits or None
    return value


class LinkSlots(_TextSlots):
  intent: Literal["disable_link", "delete_link", "get_link"]
  link_id: Optional[str] = None

  @field_validator("link_id", mode="before")
  @classmethod
  def _link_id(cls, value: Any) -> Any:
    if isinstance(value, int):
      return str(value)
    return value


class ListLinksSlots(_TextSlots):
  intent: Literal["list_links"] = "list_links"


class LogTimeSlots(_TextSlots):
  intent: Literal["log_time"] = "log_time"
  project: Optional[str] = None
  duration: Optional[Union[float, str]] = None
  start_time: Optional[str] = None
  date: Optional[str] = None
  description: Optional[str] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("project", "duration")
  examples: ClassVar[Tuple[str, ...]] = ("log 2 hours to Website Redesign",
                                         "log 30m for Acme yesterday at 3pm")


class QueryTimeSlots(_TextSlots):
  intent: Literal["query_time"] = "query_time"
  project: Optional[str] = None
  period: str = "today"
  user: Optional[str] = None


class CheckCalendarSlots(_TextSlots):
  intent: Literal["check_calendar"] = "check_calendar"
  date: Optional[str] = None
  period: Optional[str] = None


class NextMeetingSlots(_TextSlots):
  intent: Literal["next_meeting"] = "next_meeting"


class CreateMeetingSlots(_TextSlots):
  intent: Literal["create_meeting"] = "create_meeting"
  title: Optional[str] = None
  date: Optional[str] = None
  start_time: Optional[str] = None
  duration: Optional[Union[int, str]] = None
  attendees: Optional[Union[List[str], str]] = None
  location: Optional[str] = None
  description: Optional[str] = None
  meeting_type: Optional[Literal["google-meet", "zoom", "none"]] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("title", "date", "start_time")
  examples: ClassVar[Tuple[str, ...]] = ("schedule Meeting with John tomorrow at 2pm",)

  @field_validator("meeting_type", mode="before")
  @classmethod
  def _meeting_type(cls, value: Any) -> Any:
    if isinstance(value, str):
      cleaned = value.strip().lower().replace(" ", "-").replace("_", "-")
      if cleaned in ("meet", "google", "gmeet", "hangouts"):
        return "google-meet"
      return cleaned or None
    return value


class BlockTimeSlots(_TextSlots):
  intent: Literal["block_time"] = "block_time"
  title: Optional[str] = None
  date: Optional[str] = None
  start_time: Optional[str] = None
  end_time: Optional[str] = None
  duration: Optional[Union[int, str]] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("title", "date", "start_time")
  examples: ClassVar[Tuple[str, ...]] = ("block time for deep work tomorrow 2pm to 4pm",)


class UpdateMeetingSlots(_TextSlots):
  intent: Literal["update_meeting"] = "update_meeting"
  event_id: Optional[str] = None
  field: Optional[str] = None
  value: Optional[str] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("event_id", "field", "value")


class DeleteMeetingSlots(_TextSlots):
  intent: Literal["delete_meeting"] = "delete_meeting"
  event_id: Optional[str] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("event_id",)


class ListTasksSlots(_TextSlots):
  intent: Literal["list_tasks"] = "list_tasks"
  project: Optional[str] = None
  assignee: Optional[str] = None
  due_date: Optional[str] = None
  status: Optional[str] = None


class ListProjectsSlots(_TextSlots):
  intent: Literal["list_projects"] = "list_projects"


class DebugTasksSlots(_TextSlots):
  intent: Literal["debug_tasks"] = "debug_tasks"
  project: Optional[str] = None


class CreateTaskSlots(_TextSlots):
  intent: Literal["create_task"] = "create_task"
  name: Optional[str] = None
  project: Optional[str] = None
  due_date: Optional[str] = None
  notes: Optional[str] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("name",)
  examples: ClassVar[Tuple[str, ...]] = ("create task Review proposal for Acme",)


class UpdateTaskSlots(_TextSlots):
  intent: Literal["update_task"] = "update_task"
  task_id: Optional[str] = None
  field: Optional[str] = None
  value: Optional[str] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("task_id", "field", "value")
  examples: ClassVar[Tuple[str, ...]] = ("mark task 123456 as complete",
                                         "update task 123456 due date to tomorrow")

  @field_validator("task_id", "value", mode="before")
  @classmethod
  def _stringify(cls, value: Any) -> Any:
    if isinstance(value, (int, float, bool)):
      return str(value).lower() if isinstance(value, bool) else str(value)
    return value


class CompleteTaskSlots(_TextSlots):
  intent: Literal["complete_task"] = "complete_task"
  task_id: Optional[str] = None

  required_slots: ClassVar[Tuple[str, ...]] = ("task_id",)

  @field_validator("task_id", mode="before")
  @classmethod
  def _stringify(cls, value: Any) -> Any:
    return str(value) if isinstance(value, int) else value


class DailyRundownSlots(_TextSlots):
  intent: Literal["daily_rundown"] = "daily_rundown"
  period: Optional[str] = None
  date: Optional[str] = None


class GeneralChatSlots(_TextSlots):
  intent: Literal["general_chat"] = "general_chat"
  message: Optional[str] = None


IntentCall = Annotated[
    Union[
        ScheduleOneoffSlots,
        LinkSlots,
        ListLinksSlots,
        LogTimeSlots,
        QueryTimeSlots,
        CheckCalendarSlots,
        NextMeetingSlots,
        CreateMeetingSlots,
        BlockTimeSlots,
        UpdateMeetingSlots,
        DeleteMeetingSlots,
        ListTasksSlots,
        ListProjectsSlots,
        DebugTasksSlots,
        CreateTaskSlots,
        UpdateTaskSlots,
        CompleteTaskSlots,
        DailyRundownSlots,
        GeneralChatSlots,
    ],
    Field(discriminator="intent"),
]

_INTENT_CALL_ADAPTER: TypeAdapter[Any] = TypeAdapter(IntentCall)


def parse_intent_call(classified: ClassifiedIntent) -> Any:
  """Validate the slot bag against the schema of ``classified.name``.

  Raises ``ValidationError`` (with the field problems as suggestions) when a
  slot has the wrong shape. Missing slots are not an error here; handlers ask
  for them.
  """
  payload: Dict[str, Any] = {
      k: v for k, v in (classified.slots or {}).items() if k != "intent"
  }
  payload["intent"] = classified.name
  try:
    return _INTENT_CALL_ADAPTER.validate_python(payload)
  except PydanticValidationError as exc:
    problems = []
    for err in exc.errors():
      loc = ".".join(str(p) for p in err.get("loc", ()) if p != classified.name)
      problems.append(f"{loc or 'input'}: {err.get('msg', 'invalid value')}")
    raise ValidationError(
        f"Some details for {classified.name.replace('_', ' ')} don't look right.",
        suggestions=problems,
    ) from exc

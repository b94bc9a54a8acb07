from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

PeriodKind = Literal["day", "week", "explicit_date", "span"]


class PeriodSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PeriodKind
    start_date: date
    end_date: date
    timezone: str
    start: datetime  # aware, UTC
    end: datetime  # aware, UTC
    label: str = ""

    @model_validator(mode="after")
    def _check_order(self) -> "PeriodSpec":
        if not self.start < self.end:
            raise ValueError("period start must precede its end")
        if self.end_date < self.start_date:
            raise ValueError("period end date precedes start date")
        return self

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains_date(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    def time_min(self) -> str:
        return self.start.isoformat().replace("+00:00", "Z")

    def time_max(self) -> str:
        return self.end.isoformat().replace("+00:00", "Z")


class UserTimezoneRecord(BaseModel):
    user_id: str
    iana_zone: str
    resolved_at: float


class ThreadConversationState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    channel_id: str
    thread_id: str
    active: bool = False
    started_by: Optional[str] = None
    last_activity: Optional[datetime] = None


class NormalizedEvent(BaseModel):
    id: str
    title: str
    start: datetime
    end: Optional[datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    description: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    attendee_names: List[str] = Field(default_factory=list)
    meeting_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)


class ProjectRef(BaseModel):
    id: Optional[str] = None
    name: str


class NormalizedTask(BaseModel):
    id: str
    title: str
    due_date: Optional[date] = None
    completed: bool = False
    notes: Optional[str] = None
    projects: List[ProjectRef] = Field(default_factory=list)
    assignee: Optional[str] = None
    permalink_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def primary_project(self) -> Optional[ProjectRef]:
        return self.projects[0] if self.projects else None


class TaskFilter(BaseModel):
    project_id: Optional[str] = None
    due_on: Optional[date] = None
    due_after: Optional[date] = None  # inclusive
    due_before: Optional[date] = None  # inclusive
    incomplete_only: bool = True
    require_due_date: bool = False
    limit: int = 100


class ProjectRollupEntry(BaseModel):
    project_name: str
    project_id: Optional[str] = None
    all_tasks: List[NormalizedTask] = Field(default_factory=list)
    overdue_tasks: List[NormalizedTask] = Field(default_factory=list)
    period_tasks: List[NormalizedTask] = Field(default_factory=list)


class NamedItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    owner: Optional[str] = None


class TimeEntry(BaseModel):
    id: Optional[str] = None
    project_id: Optional[str] = None
    description: str = ""
    start: datetime
    duration_seconds: int


class SchedulingLink(BaseModel):
    id: str
    name: str = ""
    url: str
    enabled: bool = True
    description: Optional[str] = None
    durations: List[int] = Field(default_factory=list)
    default_duration: Optional[int] = None

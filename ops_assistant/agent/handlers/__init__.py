"""Intent handlers, one module per provider domain."""
from __future__ import annotations

from typing import List

from ..dispatcher import HandlerSpec
from . import calendar, chat, rundown, scheduling, tasks, time_tracking


def build_handler_specs() -> List[HandlerSpec]:
  return [
      HandlerSpec("schedule_oneoff", scheduling.schedule_oneoff, "SavvyCal"),
      HandlerSpec("disable_link", scheduling.link_action, "SavvyCal"),
      HandlerSpec("delete_link", scheduling.link_action, "SavvyCal"),
      HandlerSpec("get_link", scheduling.link_action, "SavvyCal"),
      HandlerSpec("list_links", scheduling.list_links, "SavvyCal"),
      HandlerSpec("log_time", time_tracking.log_time, "Toggl"),
      HandlerSpec("query_time", time_tracking.query_time, "Toggl"),
      HandlerSpec("check_calendar", calendar.check_calendar, "Google Calendar"),
      HandlerSpec("next_meeting", calendar.next_meeting, "Google Calendar"),
      HandlerSpec("create_meeting", calendar.create_meeting, "Google Calendar"),
      HandlerSpec("block_time", calendar.block_time, "Google Calendar"),
      HandlerSpec("update_meeting", calendar.update_meeting, "Google Calendar"),
      HandlerSpec("delete_meeting", calendar.delete_meeting, "Google Calendar"),
      HandlerSpec("list_tasks", tasks.list_tasks, "Asana"),
      HandlerSpec("list_projects", tasks.list_projects, "Asana"),
      HandlerSpec("debug_tasks", tasks.debug_tasks, "Asana"),
      HandlerSpec("create_task", tasks.create_task, "Asana"),
      HandlerSpec("update_task", tasks.update_task, "Asana"),
      HandlerSpec("complete_task", tasks.complete_task, "Asana"),
      HandlerSpec("daily_rundown", rundown.daily_rundown, "Asana"),
      HandlerSpec("general_chat", chat.general_chat, "Slack"),
  ]


__all__ = ["build_handler_specs"]

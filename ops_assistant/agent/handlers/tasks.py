from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from ...models import NormalizedTask, TaskFilter
from ...ranges import week_range
from ...temporal import parse_date, today_in_zone
from ...utils import bullet_list, format_day
from ..context import HandlerContext
from ..formatting import render_task_groups
from ..schemas import (CompleteTaskSlots, CreateTaskSlots, DebugTasksSlots, ListProjectsSlots,
                       ListTasksSlots, UpdateTaskSlots)
from .common import ask_for_missing, call, reply_unknown_project

logger = logging.getLogger(__name__)

DEBUG_LIMIT = 10

_ALL_STATUSES = ("all", "any", "completed", "complete", "done")


def _include_completed(status: Optional[str]) -> bool:
  return (status or "").strip().lower() in _ALL_STATUSES


async def _tasks_for_due(ctx: HandlerContext, client: Any, due: str,
                         include_completed: bool) -> Tuple[str, List[NormalizedTask]]:
  zone = ctx.timezone
  today = today_in_zone(zone, ctx.now)
  key = due.strip().lower()
  if key == "today":
    return "*Tasks due today:*", await call(client.tasks_due_between, today, today)
  if key in ("this week", "this_week", "week"):
    week = week_range(zone, ctx.now)
    return "*Tasks due this week:*", await call(client.tasks_due_between,
                                                 week.start_date, week.end_date)
  if key == "overdue":
    return "*Overdue tasks:*", await call(client.overdue_tasks, today)
  day = parse_date(due, zone, ctx.now)
  tasks = await call(client.get_tasks,
                     TaskFilter(due_on=day, incomplete_only=not include_completed))
  return f"*Tasks due {format_day(day)}:*", tasks


async def list_tasks(ctx: HandlerContext, slots: ListTasksSlots) -> None:
  client = ctx.require("tasks")
  today = today_in_zone(ctx.timezone, ctx.now)
  include_completed = _include_completed(slots.status)

  if slots.due_date:
    title, tasks = await _tasks_for_due(ctx, client, slots.due_date, include_completed)
  elif slots.project:
    project = await call(client.find_project, slots.project)
    if project is None:
      await reply_unknown_project(ctx, slots.project, client)
      return
    logger.info("Listing tasks for Asana project %s (%s)", project.name, project.id)
    tasks = await call(client.get_tasks,
                       TaskFilter(project_id=project.id, incomplete_only=not include_completed))
    tasks = [t for t in tasks if t.title.strip()]
    title = f"*Tasks in {project.name}:*"
  else:
    week = week_range(ctx.timezone, ctx.now)
    tasks = await call(client.tasks_due_between, week.start_date, week.end_date)
    title = "*Your tasks this week:*"

  ctx.remember(last_action="listed_tasks", listed_task_ids=[t.id for t in tasks[:20]])
  await ctx.reply(render_task_groups(title, tasks, today))


async def list_projects(ctx: HandlerContext, slots: ListProjectsSlots) -> None:
  client = ctx.require("tasks")
  projects = await call(client.get_projects)
  if not projects:
    await ctx.reply("No projects found in your Asana workspace.")
    return
  lines = [f"• *{p.name}*" + (f" ({p.owner})" if p.owner else "") for p in projects]
  await ctx.reply("*Available Asana projects:*\n\n" + "\n".join(lines))


def _debug_line(task: NormalizedTask) -> str:
  due = task.due_date.isoformat() if task.due_date else "none"
  projects = ", ".join(p.name for p in task.projects) or "none"
  state = "done" if task.completed else "open"
  return f"• `{task.id}` *{task.title or '(untitled)'}* due={due} {state} projects=[{projects}]"


async def debug_tasks(ctx: HandlerContext, slots: DebugTasksSlots) -> None:
  client = ctx.require("tasks")
  flt = TaskFilter()
  scope = "your assigned tasks"
  if slots.project:
    project = await call(client.find_project, slots.project)
    if project is None:
      await reply_unknown_project(ctx, slots.project, client)
      return
    flt = TaskFilter(project_id=project.id)
    scope = f"project {project.name} (`{project.id}`)"

  tasks = await call(client.get_tasks, flt)
  with_due = sum(1 for t in tasks if t.due_date)
  without_project = sum(1 for t in tasks if not t.projects)
  text = (f"*Task debug for {scope}:*\n"
          f"Fetched {len(tasks)} incomplete tasks, {with_due} with a due date, "
          f"{without_project} without a project.")
  if tasks:
    text += "\n\n" + bullet_list((_debug_line(t) for t in tasks), DEBUG_LIMIT)
  await ctx.reply(text)


async def create_task(ctx: HandlerContext, slots: CreateTaskSlots) -> None:
  if await ask_for_missing(ctx, slots, "I need a task name to create a new task."):
    return
  client = ctx.require("tasks")
  project_ids: List[str] = []
  project_name = None
  if slots.project:
    project = await call(client.find_project, slots.project)
    if project is None:
      await reply_unknown_project(ctx, slots.project, client)
      return
    project_ids, project_name = [project.id], project.name

  due = parse_date(slots.due_date, ctx.timezone, ctx.now) if slots.due_date else None
  task = await call(client.create_task, slots.name, notes=slots.notes or "", due_on=due,
                    project_ids=project_ids)
  ctx.remember(last_action="created_task", last_task_id=task.id)

  text = f"✅ Created task: *{task.title or slots.name}*"
  if task.due_date:
    text += f"\nDue: {format_day(task.due_date)}"
  if project_name:
    text += f"\nProject: {project_name}"
  await ctx.reply(text)


def _update_body(ctx: HandlerContext, field: str, value: str) -> Optional[Dict[str, Any]]:
  if field in ("status", "complete", "completed"):
    return {"completed": value.strip().lower() in ("complete", "completed", "done", "true")}
  if field in ("due_date", "due", "due_on"):
    return {"due_on": parse_date(value, ctx.timezone, ctx.now).isoformat()}
  if field in ("name", "title"):
    return {"name": value}
  if field in ("notes", "description"):
    return {"notes": value}
  return None


async def update_task(ctx: HandlerContext, slots: UpdateTaskSlots) -> None:
  if await ask_for_missing(ctx, slots, "I need a task ID, the field to update and the new value."):
    return
  field = slots.field.strip().lower().replace(" ", "_")
  body = _update_body(ctx, field, slots.value)
  if body is None:
    await ctx.reply(f"I don't know how to update \"{slots.field}\". "
                    "I can update: status, due_date, name, or notes.")
    return

  client = ctx.require("tasks")
  task = await call(client.update_task, slots.task_id, body)
  ctx.remember(last_action="updated_task", last_task_id=slots.task_id)

  if "completed" in body:
    if body["completed"]:
      text = f"🎉 Marked complete: *{task.title}*"
    else:
      text = f"🔄 Reopened task: *{task.title}*"
  else:
    text = f"✅ Updated task: *{task.title}*"
    if "due_on" in body:
      text += f"\nNew due date: {format_day(task.due_date) if task.due_date else 'None'}"
  await ctx.reply(text)


async def complete_task(ctx: HandlerContext, slots: CompleteTaskSlots) -> None:
  if not slots.task_id:
    last = ctx.thread_context().get("last_task_id")
    if last:
      slots = slots.model_copy(update={"task_id": last})
  if await ask_for_missing(ctx, slots, "Which task should I mark complete? I need its ID."):
    return
  client = ctx.require("tasks")
  task = await call(client.complete_task, slots.task_id)
  ctx.remember(last_action="completed_task", last_task_id=slots.task_id)
  await ctx.reply(f"🎉 Marked complete: *{task.title}*")

"""Slack operations assistant: scheduling links, time tracking, calendar, tasks."""

__version__ = "0.1.0"

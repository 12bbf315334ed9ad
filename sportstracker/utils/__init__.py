"""Utility modules for the sports tracker."""

from . import task_tracker
from . import week_calendar

__all__ = ["task_tracker", "week_calendar"]

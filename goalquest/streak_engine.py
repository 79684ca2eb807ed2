"""
Streak Engine
=============
Pure completion toggle for a single goal.

Dates are calendar-day strings (YYYY-MM-DD) in the host's local time.
`today` and `yesterday` are always passed in so the rules can be checked
against any simulated date.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from .goal_schema import Goal


def today_string(now: Optional[datetime] = None) -> str:
    """Local calendar day of `now` (defaults to the current time)."""
    now = now or datetime.now()
    return now.date().isoformat()


def yesterday_string(now: Optional[datetime] = None) -> str:
    """Calendar day before `now`."""
    now = now or datetime.now()
    return (now.date() - timedelta(days=1)).isoformat()


def toggle(goal: Goal, today: str, yesterday: str) -> Goal:
    """
    Flip today's completion for a goal and return the updated copy.

    - Already completed today: uncheck it and take one day off the streak
      (never below zero).
    - Completed yesterday: the streak continues.
    - Anything else (new goal, or one or more missed days): the streak
      restarts at 1.
    """
    if goal.last_completed_date == today:
        return replace(
            goal,
            last_completed_date=None,
            streak=max(0, goal.streak - 1)
        )

    if goal.last_completed_date == yesterday:
        new_streak = goal.streak + 1
    else:
        new_streak = 1

    return replace(goal, last_completed_date=today, streak=new_streak)

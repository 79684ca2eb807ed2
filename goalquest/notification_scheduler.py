"""
Notification Scheduler
======================
Once-per-day reminder about an incomplete goal.

Checked at application start only. The day a reminder fires is stored
under its own key so that a restart later the same day stays quiet.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import StorageError
from .goal_schema import Goal
from .logger import get_logger
from .storage import KeyValueStorage

logger = get_logger("notification_scheduler")

LAST_NOTIFIED_KEY = "lastNotificationDate"
DEFAULT_TEMPLATE = "Don't forget {title}! Keep your streak alive 🔥"


@dataclass(frozen=True)
class Reminder:
    message: str
    goal_title: str


def check_and_notify(goals: Iterable[Goal], today: str,
                     last_notified_day: Optional[str],
                     template: str = DEFAULT_TEMPLATE) -> Optional[Reminder]:
    """
    Pick the reminder for today, if one is due.

    Returns None when a reminder already fired today, when there are no
    goals, or when every goal is already completed today. Otherwise the
    first goal (in collection order) not completed today is named.
    """
    if last_notified_day == today:
        return None

    incomplete = next((g for g in goals if g.last_completed_date != today), None)
    if incomplete is None:
        return None

    return Reminder(
        message=template.format(title=incomplete.title),
        goal_title=incomplete.title
    )


class NotificationScheduler:
    """Runs `check_and_notify` against the stored last-notified marker."""

    def __init__(self, storage: KeyValueStorage, template: str = DEFAULT_TEMPLATE):
        self.storage = storage
        self.template = template

    def last_notified_day(self) -> Optional[str]:
        try:
            return self.storage.get(LAST_NOTIFIED_KEY)
        except StorageError as e:
            logger.warning("Could not read last notification day: %s", e)
            return None

    def run(self, goals: Iterable[Goal], today: str) -> Optional[Reminder]:
        """
        Emit today's reminder if due and record that it fired.
        A failed marker write is logged; the reminder is still returned.
        """
        reminder = check_and_notify(goals, today, self.last_notified_day(), self.template)
        if reminder is None:
            return None

        try:
            self.storage.set(LAST_NOTIFIED_KEY, today)
        except StorageError as e:
            logger.warning("Could not record notification day %s: %s", today, e)
        logger.info("Reminder fired for '%s'", reminder.goal_title)
        return reminder

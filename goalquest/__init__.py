# GoalQuest package
# Core modules for the daily goal / streak tracker

from .goal_schema import Goal, PhotoEntry
from .goal_store import GoalStore
from .photo_pipeline import PhotoPipeline
from .notification_scheduler import NotificationScheduler, Reminder, check_and_notify
from .storage import KeyValueStorage, MemoryStorage, FileStorage
from .config import Settings, load_settings
from .errors import (
    GoalQuestError, ConfigError, StorageError, StorageQuotaExceeded,
    GoalDataCorrupted, ImageDecodeError
)

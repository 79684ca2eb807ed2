"""Exceptions raised by the goal tracker core."""


class GoalQuestError(Exception):
    """Base class for all tracker errors."""


class ConfigError(GoalQuestError):
    """A settings file or environment value could not be used."""


class StorageError(GoalQuestError):
    """The durable key-value storage failed."""


class StorageQuotaExceeded(StorageError):
    """The backing storage rejected a write (quota reached or disk full)."""

    def __init__(self, key: str, size: int = 0, quota: int = 0):
        self.key = key
        self.size = size
        self.quota = quota
        if quota:
            msg = f"Writing '{key}' needs {size} bytes, storage quota is {quota} bytes"
        else:
            msg = f"Storage rejected write of '{key}'"
        super().__init__(msg)


class GoalDataCorrupted(GoalQuestError):
    """The stored goal collection could not be decoded."""


class ImageDecodeError(GoalQuestError):
    """The supplied file is not a readable image."""

"""
Settings loader.

Reads `.env` (via python-dotenv), then an optional YAML settings file,
then environment overrides:

    GOALQUEST_CONFIG               path to the YAML file
    GOALQUEST_DATA_DIR             where goal data is stored
    GOALQUEST_STORAGE_QUOTA        byte limit for stored data (0 = none)
    GOALQUEST_PHOTO_MAX_DIMENSION  photo bounding box in pixels
    GOALQUEST_PHOTO_QUALITY        JPEG quality 1-95
    GOALQUEST_LOG_LEVEL            DEBUG / INFO / WARNING / ...
    GOALQUEST_LOG_FILE             optional rotating log file

Example settings.yaml:

    data_dir: ~/.goalquest
    storage_quota: 5242880
    photo:
      max_dimension: 800
      quality: 70
    reminder_template: "Don't forget {title}! Keep your streak alive 🔥"
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError
from .notification_scheduler import DEFAULT_TEMPLATE
from .photo_pipeline import DEFAULT_MAX_DIMENSION, DEFAULT_QUALITY

DEFAULT_DATA_DIR = os.path.join("~", ".goalquest")
DEFAULT_STORAGE_QUOTA = 5 * 1024 * 1024


@dataclass
class Settings:
    data_dir: str = field(default_factory=lambda: os.path.expanduser(DEFAULT_DATA_DIR))
    storage_quota: int = DEFAULT_STORAGE_QUOTA
    photo_max_dimension: int = DEFAULT_MAX_DIMENSION
    photo_quality: int = DEFAULT_QUALITY
    reminder_template: str = DEFAULT_TEMPLATE
    log_level: str = "WARNING"
    log_file: Optional[str] = None


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Could not read settings file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return data


def _as_int(name: str, value: Any, low: int, high: Optional[int] = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if number < low or (high is not None and number > high):
        bound = f"{low}-{high}" if high is not None else f">= {low}"
        raise ConfigError(f"{name} must be {bound}, got {number}")
    return number


def load_settings(path: Optional[str] = None) -> Settings:
    """Build Settings from .env, the YAML file and the environment."""
    load_dotenv(find_dotenv(usecwd=True))
    settings = Settings()

    path = path or os.getenv("GOALQUEST_CONFIG")
    raw = _read_yaml(path) if path else {}
    photo = raw.get("photo") or {}

    data_dir = os.getenv("GOALQUEST_DATA_DIR", raw.get("data_dir"))
    if data_dir:
        settings.data_dir = os.path.expanduser(str(data_dir))

    quota = os.getenv("GOALQUEST_STORAGE_QUOTA", raw.get("storage_quota"))
    if quota is not None:
        settings.storage_quota = _as_int("storage_quota", quota, 0)

    max_dim = os.getenv("GOALQUEST_PHOTO_MAX_DIMENSION", photo.get("max_dimension"))
    if max_dim is not None:
        settings.photo_max_dimension = _as_int("photo.max_dimension", max_dim, 16)

    quality = os.getenv("GOALQUEST_PHOTO_QUALITY", photo.get("quality"))
    if quality is not None:
        settings.photo_quality = _as_int("photo.quality", quality, 1, 95)

    template = raw.get("reminder_template")
    if template:
        if "{title}" not in template:
            raise ConfigError("reminder_template must contain {title}")
        try:
            template.format(title="Read")
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"reminder_template may only use {{title}}: {e!r}") from e
        settings.reminder_template = template

    settings.log_level = os.getenv("GOALQUEST_LOG_LEVEL", raw.get("log_level", settings.log_level)).upper()
    settings.log_file = os.getenv("GOALQUEST_LOG_FILE", raw.get("log_file"))
    return settings

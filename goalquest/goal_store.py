"""
Goal Store
==========
Owns the in-memory goal collection and keeps it in sync with durable
storage. Handles:
- Loading / persisting the collection (one JSON array under one key)
- Add / remove / toggle goals
- Attaching progress photos (via the photo pipeline)
- Notifying subscribers after every change

Every mutator writes the full collection straight away. A rejected write
leaves the in-memory change in place and marks the store as unsaved.
"""

import json
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .errors import (
    GoalDataCorrupted, GoalQuestError, ImageDecodeError, StorageError
)
from .goal_schema import Goal, PhotoEntry
from .logger import get_logger
from .photo_pipeline import PhotoPipeline, ImageSource
from .storage import KeyValueStorage
from . import streak_engine

logger = get_logger("goal_store")

GOALS_KEY = "goalQuestData"

Listener = Callable[[Tuple[Goal, ...]], None]


def _default_id() -> str:
    return str(uuid.uuid4())


def _default_clock() -> datetime:
    return datetime.now()


def encode_goals(goals) -> str:
    """Serialize a goal collection. Same input always gives the same text."""
    return json.dumps([g.to_dict() for g in goals], ensure_ascii=False,
                      separators=(",", ":"))


def decode_goals(raw: str) -> List[Goal]:
    """
    Parse a stored goal collection.

    Raises:
        GoalDataCorrupted: not JSON, not a list, or a record is malformed
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise GoalDataCorrupted(f"Stored goals are not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise GoalDataCorrupted("Stored goals are not a list")
    try:
        goals = [Goal.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise GoalDataCorrupted(f"Malformed goal record: {e!r}") from e

    seen = set()
    for goal in goals:
        if goal.id in seen:
            raise GoalDataCorrupted(f"Duplicate goal id {goal.id}")
        seen.add(goal.id)
    return goals


class GoalStore:
    """
    Single owner of the goal collection.
    Mutations go through the methods below; readers get immutable
    snapshots via `goals` or subscribe for change callbacks.
    """

    def __init__(self, storage: KeyValueStorage,
                 photo_pipeline: Optional[PhotoPipeline] = None,
                 id_factory: Callable[[], str] = _default_id,
                 clock: Callable[[], datetime] = _default_clock):
        """
        Args:
            storage: Durable key-value storage
            photo_pipeline: Image resizer used by attach_photo
            id_factory: Generates goal and photo IDs
            clock: Returns "now" for createdAt and photo timestamps
        """
        self.storage = storage
        self.photo_pipeline = photo_pipeline or PhotoPipeline()
        self.id_factory = id_factory
        self.clock = clock

        self._goals: List[Goal] = []
        self._listeners: List[Listener] = []

        # Set when the last load discarded unreadable data
        self.load_error: Optional[GoalQuestError] = None
        # True while in-memory state is ahead of durable storage
        self.unsaved = False

    # ==================== PERSISTENCE ====================

    def load(self) -> List[Goal]:
        """
        Load the collection from storage.
        Unreadable data is discarded and reported on `load_error`.
        """
        self.load_error = None
        try:
            raw = self.storage.get(GOALS_KEY)
            goals = decode_goals(raw) if raw is not None else []
        except (StorageError, GoalDataCorrupted) as e:
            logger.warning("Failed to parse goals, starting empty: %s", e)
            self.load_error = e
            goals = []

        self._goals = goals
        self.unsaved = False
        logger.info("Loaded %d goals", len(goals))
        self._notify()
        return list(goals)

    def persist(self, goals=None):
        """
        Write the full collection to storage.

        Raises:
            StorageQuotaExceeded: storage rejected the write (quota or disk
                full); memory keeps the change and `unsaved` stays True
            StorageError: any other write failure, handled the same way
        """
        if goals is None:
            goals = self._goals
        try:
            self.storage.set(GOALS_KEY, encode_goals(goals))
        except StorageError as e:
            self.unsaved = True
            logger.warning("Could not save goals, %d kept in memory only: %s", len(goals), e)
            raise
        self.unsaved = False

    def _commit(self, goals: List[Goal]):
        """Swap in a new collection, persist it, then notify observers."""
        self._goals = goals
        try:
            self.persist(goals)
        finally:
            # observers re-render even when the write was rejected
            self._notify()

    # ==================== OBSERVERS ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener(goals)`; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        snapshot = self.goals
        for listener in list(self._listeners):
            listener(snapshot)

    # ==================== QUERIES ====================

    @property
    def goals(self) -> Tuple[Goal, ...]:
        return tuple(self._goals)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        """Get a goal by ID."""
        return next((g for g in self._goals if g.id == goal_id), None)

    def active_streaks_count(self) -> int:
        """Number of goals with a running streak."""
        return len([g for g in self._goals if g.streak > 0])

    # ==================== MUTATORS ====================

    def add(self, title: str, description: str = "") -> Goal:
        """Create a goal and put it first in the collection."""
        title = title.strip()
        if not title:
            raise ValueError("Goal title must not be empty")

        goal = Goal(
            id=self.id_factory(),
            title=title,
            description=description.strip(),
            created_at=self.clock().isoformat(),
            streak=0,
            last_completed_date=None,
            photos=[]
        )
        self._commit([goal] + self._goals)
        logger.info("Added goal %s: %s", goal.id, goal.title)
        return goal

    def remove(self, goal_id: str) -> bool:
        """Delete a goal and its photos. Returns False if it does not exist."""
        remaining = [g for g in self._goals if g.id != goal_id]
        if len(remaining) == len(self._goals):
            return False
        self._commit(remaining)
        logger.info("Removed goal %s", goal_id)
        return True

    def toggle(self, goal_id: str, today: str, yesterday: str) -> Optional[Goal]:
        """Flip today's completion for a goal. Returns the updated goal."""
        current = self.get_goal(goal_id)
        if current is None:
            return None

        updated = streak_engine.toggle(current, today, yesterday)
        self._commit([updated if g.id == goal_id else g for g in self._goals])
        return updated

    async def attach_photo(self, goal_id: str, file: ImageSource) -> Optional[PhotoEntry]:
        """
        Resize `file` and append it to the goal's photos.

        The collection may change while the resize is running, so the new
        entry is merged into whatever the goal looks like when it finishes.
        Returns None if the goal was removed in the meantime.

        Raises:
            ImageDecodeError: `file` is not a readable image; nothing changes
        """
        try:
            image = await self.photo_pipeline.resize(file)
        except ImageDecodeError as e:
            logger.warning("Error processing image for goal %s: %s", goal_id, e)
            raise

        current = self.get_goal(goal_id)
        if current is None:
            logger.info("Goal %s was removed before its photo was ready", goal_id)
            return None

        entry = PhotoEntry(
            id=self.id_factory(),
            date=self.clock().isoformat(),
            image=image
        )
        updated = replace(current, photos=current.photos + [entry])
        self._commit([updated if g.id == goal_id else g for g in self._goals])
        return entry

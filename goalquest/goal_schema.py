"""
Goal Schema for the Habit Tracker
=================================
Defines data structures for:
- Goals (a habit the user marks complete once per calendar day)
- Photo Entries (progress pictures attached to a goal)

Keys use the camelCase names of the stored JSON collection.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from datetime import datetime
import uuid


@dataclass(frozen=True)
class PhotoEntry:
    """A single progress photo. Never modified after capture."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    date: str = field(default_factory=lambda: datetime.now().isoformat())
    image: str = ""  # data:image/jpeg;base64,...

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "image": self.image
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhotoEntry":
        return cls(
            id=data["id"],
            date=data["date"],
            # records written by the browser version use "dataUrl"
            image=data["image"] if "image" in data else data["dataUrl"]
        )


@dataclass
class Goal:
    """
    A daily habit being tracked.
    `streak` counts consecutive calendar days of completion and
    `last_completed_date` holds the YYYY-MM-DD of the latest one.
    """
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    description: str = ""
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    streak: int = 0
    last_completed_date: Optional[str] = None
    photos: List[PhotoEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdAt": self.created_at,
            "streak": self.streak,
            "lastCompletedDate": self.last_completed_date,
            "photos": [p.to_dict() for p in self.photos]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        photos = [PhotoEntry.from_dict(p) for p in data.get("photos", [])]
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            created_at=data["createdAt"],
            streak=max(0, int(data.get("streak", 0))),
            last_completed_date=data.get("lastCompletedDate"),
            photos=photos
        )

    def is_completed_on(self, day: str) -> bool:
        """True if the goal was marked complete on the given calendar day."""
        return self.last_completed_date == day


# --- INLINE TESTS ---
if __name__ == "__main__":
    import sys

    if "--test" in sys.argv:
        print("Running goal_schema tests...")

        photo = PhotoEntry(image="data:image/jpeg;base64,AAAA")
        assert PhotoEntry.from_dict(photo.to_dict()) == photo, "PhotoEntry serialization failed"
        print("  ✓ PhotoEntry serialization")

        goal = Goal(title="Read", description="20 pages", streak=5,
                    last_completed_date="2024-01-01")
        goal.photos.append(photo)
        restored = Goal.from_dict(goal.to_dict())
        assert restored == goal, "Goal serialization failed"
        assert restored.is_completed_on("2024-01-01"), "Completion check failed"
        print("  ✓ Goal serialization")

        print("\nAll goal_schema tests passed! ✓")
    else:
        print("Usage: python -m goalquest.goal_schema --test")

import os
import sys
import asyncio
from typing import Optional

from prompt_toolkit import prompt
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.shortcuts import confirm

from goalquest import (
    GoalStore, PhotoPipeline, NotificationScheduler, FileStorage,
    ConfigError, GoalQuestError, ImageDecodeError, StorageError, load_settings
)
from goalquest.goal_schema import Goal
from goalquest.logger import setup_logging
from goalquest.photo_pipeline import decode_data_url
from goalquest.streak_engine import today_string, yesterday_string


class GoalQuestConsole:
    """Interactive front end over the goal store."""

    def __init__(self, settings):
        self.settings = settings
        storage = FileStorage(settings.data_dir, quota=settings.storage_quota or None)
        self.store = GoalStore(
            storage,
            photo_pipeline=PhotoPipeline(settings.photo_max_dimension, settings.photo_quality)
        )
        self.scheduler = NotificationScheduler(storage, settings.reminder_template)
        self.notification: Optional[str] = None

    def start(self):
        self.store.load()
        if self.store.load_error:
            print(f"\n⚠ Saved goals could not be read and were reset ({self.store.load_error}).")

        reminder = self.scheduler.run(self.store.goals, today_string())
        if reminder:
            self.notification = reminder.message

    # ==================== DISPLAY ====================

    def _show_header(self):
        print("\n╔══════════════════════════════════╗")
        print("║   GOALQUEST                      ║")
        print("╚══════════════════════════════════╝")
        print(f"🔥 {self.store.active_streaks_count()} Active Streaks")

        if self.notification:
            print(f"\n>>> {self.notification}  (d: dismiss)")

    def _show_goals(self):
        goals = self.store.goals
        if not goals:
            print("\nNo Goals Yet. Create your first goal to start your journey!")
            return

        today = today_string()
        print("\n🎯 Goals:")
        for i, g in enumerate(goals, 1):
            mark = "✓" if g.is_completed_on(today) else "·"
            print(f"   {i}. [{mark}] {g.title}  (streak: {g.streak}, photos: {len(g.photos)})")
            if g.description:
                print(f"      └─ {g.description}")

    def _pick_goal(self) -> Optional[Goal]:
        goals = self.store.goals
        if not goals:
            print("No goals yet.")
            return None
        choice = prompt("Goal number: ").strip()
        try:
            index = int(choice) - 1
        except ValueError:
            print("Cancelled.")
            return None
        if not 0 <= index < len(goals):
            print("No such goal.")
            return None
        return goals[index]

    def _storage_warning(self, error: StorageError):
        print("\n" + "=" * 50)
        print("  Storage limit reached! Please delete some photos or goals.")
        print(f"  ({error})")
        print("  Your latest change is kept until the next successful save.")
        print("=" * 50)
        prompt("Press Enter to continue...")

    # ==================== ACTIONS ====================

    def _add_goal(self):
        print("\n--- Create New Goal ---")
        title = prompt("Goal title: ").strip()
        if not title:
            print("Cancelled.")
            return
        description = prompt("Description (Enter to skip): ").strip()
        try:
            goal = self.store.add(title, description)
            print(f"\n✓ Created goal: {goal.title}")
        except StorageError as e:
            self._storage_warning(e)

    def _toggle_goal(self):
        goal = self._pick_goal()
        if not goal:
            return
        try:
            updated = self.store.toggle(goal.id, today_string(), yesterday_string())
        except StorageError as e:
            self._storage_warning(e)
            return
        if updated.last_completed_date:
            print(f"\n✓ {updated.title} done for today. Streak: {updated.streak}")
        else:
            print(f"\n{updated.title} unchecked. Streak: {updated.streak}")

    def _attach_photo(self):
        goal = self._pick_goal()
        if not goal:
            return
        path = os.path.expanduser(prompt("Image file path: ").strip())
        if not path:
            print("Cancelled.")
            return
        try:
            entry = asyncio.run(self.store.attach_photo(goal.id, path))
        except ImageDecodeError:
            print("\nFailed to process image. Try a smaller file.")
            return
        except StorageError as e:
            self._storage_warning(e)
            return
        if entry:
            print(f"\n📷 Photo added to {goal.title}.")

    def _view_progress(self):
        goal = self._pick_goal()
        if not goal:
            return
        print(f"\n--- {goal.title} ---")
        print(f"Started: {goal.created_at[:10]} | Streak: {goal.streak} | "
              f"Last done: {goal.last_completed_date or '-'}")
        if not goal.photos:
            print("No progress photos yet.")
            return
        for i, photo in enumerate(goal.photos, 1):
            print(f"  {i}. {photo.date[:16].replace('T', ' ')}")

        export_dir = prompt("Export photos to folder (Enter to skip): ").strip()
        if export_dir:
            self._export_photos(goal, os.path.expanduser(export_dir))

    def _export_photos(self, goal: Goal, export_dir: str):
        try:
            os.makedirs(export_dir, exist_ok=True)
            for i, photo in enumerate(goal.photos, 1):
                with open(os.path.join(export_dir, f"{i:03d}_{photo.id}.jpg"), 'wb') as f:
                    f.write(decode_data_url(photo.image))
        except (OSError, GoalQuestError, ValueError) as e:
            # ValueError covers undecodable base64 payloads
            print(f"\nCould not export photos: {e}")
            return
        print(f"Saved {len(goal.photos)} photos to {export_dir}")

    def _delete_goal(self):
        goal = self._pick_goal()
        if not goal:
            return
        if not confirm(f"Delete '{goal.title}'? This cannot be undone."):
            print("Cancelled.")
            return
        try:
            self.store.remove(goal.id)
            print(f"\nDeleted {goal.title}.")
        except StorageError as e:
            self._storage_warning(e)

    def run(self):
        self.start()
        while True:
            self._show_header()
            self._show_goals()

            print("\n--- Options ---")
            print("1: Create New Goal")
            print("2: Mark Done / Undo Today")
            print("3: Add Progress Photo")
            print("4: View Progress")
            print("5: Delete Goal")
            print("6: Exit")

            choice = prompt(HTML('<style fg="#ansigreen">Select: </style>')).strip().lower()

            if choice == '1':
                self._add_goal()
            elif choice == '2':
                self._toggle_goal()
            elif choice == '3':
                self._attach_photo()
            elif choice == '4':
                self._view_progress()
            elif choice == '5':
                self._delete_goal()
            elif choice == 'd':
                self.notification = None
            elif choice == '6':
                break


def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1
    setup_logging(settings.log_level, settings.log_file)

    try:
        GoalQuestConsole(settings).run()
    except (KeyboardInterrupt, EOFError):
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())

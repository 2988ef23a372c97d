"""
Behavioral pattern inference over a user's recent task history.

The profile only ever influences prompt wording. With fewer than
MIN_SAMPLE_SIZE tasks it stays neutral so that one unusual task cannot
steer the model for a new user.
"""
from collections import Counter
from datetime import datetime
from typing import Optional

from database import get_recent_tasks_with_steps
from models import BehavioralProfile, Task, CATEGORIES

MIN_SAMPLE_SIZE = 3
HISTORY_WINDOW = 50

TIME_BUCKETS = ("morning", "afternoon", "evening", "night")


def get_time_of_day(hour: int) -> str:
    """Bucket an hour (0-23, server local clock) into a time-of-day label."""
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def _local_hour(timestamp: str) -> int:
    """Hour of an ISO timestamp on the server's local clock. Naive values are already local."""
    dt = datetime.fromisoformat(timestamp)
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.hour


def _most_common(values: list[str], order: tuple[str, ...]) -> Optional[str]:
    """
    Most frequent value. Ties go to the value listed first in `order`,
    so results do not depend on the order the history was fetched in.
    """
    counts = Counter(values)
    if not counts:
        return None
    return max(order, key=lambda v: (counts[v], -order.index(v)))


def _complexity(tasks: list[Task]) -> str:
    broken_down = [t for t in tasks if t.steps]
    if not broken_down:
        return "moderate"
    avg_steps = sum(len(t.steps) for t in broken_down) / len(broken_down)
    if avg_steps <= 3:
        return "simple"
    if avg_steps <= 5:
        return "moderate"
    return "complex"


def _pause_frequency(tasks: list[Task]) -> str:
    pause_rate = sum(1 for t in tasks if t.status == "PAUSED") / len(tasks)
    if pause_rate > 0.4:
        return "high"
    if pause_rate > 0.15:
        return "moderate"
    return "low"


def derive_profile(tasks: list[Task]) -> BehavioralProfile:
    """Derive a BehavioralProfile from already-fetched tasks (with steps)."""
    if len(tasks) < MIN_SAMPLE_SIZE:
        return BehavioralProfile(task_count=len(tasks))

    hours = [_local_hour(t.created_at) for t in tasks]
    all_steps = [s for t in tasks for s in t.steps]
    completion_rate = (
        sum(1 for s in all_steps if s.completed) / len(all_steps)
        if all_steps else 0.0
    )

    return BehavioralProfile(
        task_count=len(tasks),
        most_active_time_of_day=_most_common([get_time_of_day(h) for h in hours], TIME_BUCKETS),
        dominant_category=_most_common([t.category for t in tasks], CATEGORIES),
        avg_completion_rate=completion_rate,
        preferred_complexity=_complexity(tasks),
        pause_frequency=_pause_frequency(tasks),
    )


def compute_user_patterns(user_id: str) -> BehavioralProfile:
    """Read the user's last HISTORY_WINDOW tasks and derive their profile.

    Read-only. Store errors propagate to the caller.
    """
    return derive_profile(get_recent_tasks_with_steps(user_id, limit=HISTORY_WINDOW))

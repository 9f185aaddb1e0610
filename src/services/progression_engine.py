"""Pure progression rules applied when a task is completed.

Nothing here performs I/O; the caller loads the current state, applies one
completion and persists the result together with the task status change.
"""

from datetime import date, timedelta

from src.core.config import constants
from src.domain.progression import ProgressionState


def _next_streak(*, streak: int, last_completed: date | None, completion_date: date) -> int:
    """Streak after a completion on `completion_date`, compared by calendar day only."""
    if last_completed is None:
        return 1
    if last_completed == completion_date - timedelta(days=1):
        return streak + 1
    if last_completed == completion_date:
        return streak
    # Gap of two or more days, or a last_completed in the future
    return 1


def apply_completion(
    current: ProgressionState | None,
    reward: int,
    completion_date: date,
) -> ProgressionState:
    """Return the progression state after completing a task worth `reward` XP.

    Args:
        current: Stored state, or None if the user never completed a task
        reward: XP granted by the task; zero is accepted, negative is a programming error
        completion_date: Local calendar date on which the completion is recorded

    Returns:
        A new ProgressionState; `current` is left untouched
    """
    if reward < 0:
        msg = f"Reward must not be negative, got {reward}"
        raise ValueError(msg)

    state = current or ProgressionState()

    # Large rewards cascade through several levels
    levels_gained, xp = divmod(state.xp + reward, constants.XP_PER_LEVEL)
    level = state.level + levels_gained

    streak = _next_streak(
        streak=state.streak,
        last_completed=state.last_completed,
        completion_date=completion_date,
    )

    return ProgressionState(xp=xp, level=level, streak=streak, last_completed=completion_date)


def xp_to_next_level(state: ProgressionState | None) -> int:
    """XP still needed to reach the next level."""
    return constants.XP_PER_LEVEL - (state.xp if state else 0)


def level_progress(state: ProgressionState | None) -> int:
    """Percentage of the current level already earned."""
    xp = state.xp if state else 0
    return xp * 100 // constants.XP_PER_LEVEL

"""Progression store: one XP/level/streak row per user."""

import logging
from datetime import date

from src.core import db_client
from src.core.errors import PersistenceError
from src.core.logging import span
from src.domain.progression import DashboardStats, ProgressionState
from src.services import progression_engine


logger = logging.getLogger(__name__)

COLLECTION = "user_stats"


async def get_progression(*, owner_id: str) -> ProgressionState | None:
    """Get a user's progression state, or None if they never completed a task.

    Raises:
        PersistenceError: If the store cannot be read
    """
    with span("progression_service.get_progression"):
        try:
            record = await db_client.get_first_record(
                collection=COLLECTION,
                filter_query=f'user_id = "{db_client.sanitize_param(owner_id)}"',
            )
        except db_client.DatabaseError as e:
            raise PersistenceError(f"Could not load progression for user {owner_id}") from e

        if record is None:
            return None
        return ProgressionState.model_validate(record)


async def upsert_progression(*, owner_id: str, state: ProgressionState) -> ProgressionState:
    """Store a user's progression state, creating the row on first write.

    Raises:
        PersistenceError: If the store rejects the write
    """
    with span("progression_service.upsert_progression"):
        try:
            record = await db_client.upsert_record(
                collection=COLLECTION,
                conflict_field="user_id",
                data={"user_id": owner_id, **state.model_dump()},
            )
        except db_client.DatabaseError as e:
            raise PersistenceError(f"Could not save progression for user {owner_id}") from e

        logger.info(
            "Saved progression for %s: level %s, xp %s, streak %s",
            owner_id,
            state.level,
            state.xp,
            state.streak,
        )
        return ProgressionState.model_validate(record)


async def get_dashboard_stats(*, owner_id: str, today: date | None = None) -> DashboardStats:
    """Progression figures plus task counts for the dashboard.

    A user with no progression row is shown level 1 with no XP and no streak.
    """
    # Imported here to avoid a cycle: task_service writes progression on completion
    from src.services import task_service  # noqa: PLC0415

    with span("progression_service.get_dashboard_stats"):
        state = await get_progression(owner_id=owner_id) or ProgressionState()
        tasks = await task_service.list_tasks(owner_id=owner_id)

        return DashboardStats(
            xp=state.xp,
            level=state.level,
            streak=state.streak,
            last_completed=state.last_completed,
            xp_to_next_level=progression_engine.xp_to_next_level(state),
            level_progress=progression_engine.level_progress(state),
            pending_count=len(task_service.pending_tasks(tasks)),
            completed_count=len(task_service.completed_tasks(tasks)),
            completed_today=len(task_service.today_tasks(tasks, today=today)),
        )

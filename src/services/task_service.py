"""Task (quest) service: CRUD, search, derived views and the completion workflow."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError

from src.core import db_client
from src.core.config import constants
from src.core.errors import InvalidStateError, NotFoundError, PersistenceError, ValidationFailedError
from src.core.logging import log_with_user_context, span
from src.domain.create_models import TaskCreate
from src.domain.task import Task, TaskCategory, TaskStatus
from src.models.service_models import CompletionResult
from src.services import progression_engine, progression_service


logger = logging.getLogger(__name__)

COLLECTION = "tasks"


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    """Translate record store failures into service error kinds."""
    try:
        yield
    except db_client.RecordNotFoundError as e:
        raise NotFoundError(f"Task not found while trying to {action}") from e
    except db_client.DatabaseError as e:
        logger.error("Task store failure during %s: %s", action, e)
        raise PersistenceError(f"Could not {action}") from e


def _local_date(moment: datetime) -> date:
    """Calendar date of a timestamp in local time; naive timestamps are taken as local already."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone().date()


def _to_task(record: dict[str, Any]) -> Task:
    return Task.model_validate(record)


async def create_task(
    *,
    owner_id: str,
    title: str,
    description: str | None = None,
    category: TaskCategory | str = TaskCategory.WORK,
    xp_reward: int = constants.DEFAULT_XP_REWARD,
) -> Task:
    """Create a new pending task owned by `owner_id`.

    Args:
        owner_id: ID of the owning user
        title: Quest title (trimmed, must not be empty)
        description: Optional description
        category: Work, DSA or Personal
        xp_reward: Positive XP granted on completion

    Returns:
        The created task

    Raises:
        ValidationFailedError: If title, category or reward is invalid
        PersistenceError: If the store rejects the write
    """
    with span("task_service.create_task"):
        try:
            task_in = TaskCreate(title=title, description=description, category=category, xp_reward=xp_reward)
        except ValidationError as e:
            raise ValidationFailedError(e.errors()[0]["msg"]) from e

        with _store_errors("create task"):
            record = await db_client.create_record(
                collection=COLLECTION,
                data={
                    "user_id": owner_id,
                    "title": task_in.title,
                    "description": task_in.description,
                    "category": task_in.category,
                    "status": TaskStatus.PENDING,
                    "xp_reward": task_in.xp_reward,
                },
            )

        log_with_user_context(logger, "info", "Created task", user_id=owner_id, task_id=record["id"])
        return _to_task(record)


async def list_tasks(*, owner_id: str) -> list[Task]:
    """All tasks of a user, newest first."""
    with span("task_service.list_tasks"):
        per_page = constants.DEFAULT_PER_PAGE_LIMIT
        records: list[dict[str, Any]] = []
        page = 1
        with _store_errors("list tasks"):
            while True:
                batch = await db_client.list_records(
                    collection=COLLECTION,
                    filter_query=f'user_id = "{db_client.sanitize_param(owner_id)}"',
                    sort="-created",
                    page=page,
                    per_page=per_page,
                )
                records.extend(batch)
                # A short page is the last one
                if len(batch) < per_page:
                    break
                page += 1
        return [_to_task(record) for record in records]


async def search_tasks(*, owner_id: str, query: str) -> list[Task]:
    """Case-insensitive substring match over title and description of a user's tasks.

    A blank query returns every task.
    """
    with span("task_service.search_tasks"):
        tasks = await list_tasks(owner_id=owner_id)
        needle = query.strip().casefold()
        if not needle:
            return tasks
        return [
            task
            for task in tasks
            if needle in task.title.casefold() or needle in (task.description or "").casefold()
        ]


async def get_task(*, task_id: str, owner_id: str) -> Task:
    """Get a task, treating tasks of other users as absent.

    Raises:
        NotFoundError: If the task does not exist or belongs to someone else
        PersistenceError: If the store cannot be read
    """
    with span("task_service.get_task"):
        with _store_errors("load task"):
            record = await db_client.get_record(collection=COLLECTION, record_id=task_id)

        if record["user_id"] != owner_id:
            logger.warning("User %s asked for task %s owned by someone else", owner_id, task_id)
            raise NotFoundError(f"Task {task_id} not found")

        return _to_task(record)


async def mark_completed(*, task_id: str, owner_id: str, completed_at: datetime) -> Task:
    """Transition a pending task to completed.

    Raises:
        NotFoundError: If the task does not belong to the caller
        InvalidStateError: If the task is already completed
        PersistenceError: If the store rejects the write
    """
    with span("task_service.mark_completed"):
        task = await get_task(task_id=task_id, owner_id=owner_id)
        if task.is_completed:
            raise InvalidStateError(f"Cannot complete: task {task_id} is already completed")

        with _store_errors("complete task"):
            record = await db_client.update_record(
                collection=COLLECTION,
                record_id=task_id,
                data={"status": TaskStatus.COMPLETED, "completed_at": completed_at},
            )
        return _to_task(record)


async def complete_task(
    *,
    task_id: str,
    owner_id: str,
    completed_at: datetime | None = None,
) -> CompletionResult:
    """Complete a task and award its XP as one unit.

    The task status write and the progression upsert share a transaction; if
    either fails both are rolled back and the task stays pending.

    Args:
        task_id: ID of the task to complete
        owner_id: ID of the calling user
        completed_at: Completion time (defaults to now, local time)

    Returns:
        CompletionResult with the completed task and the new progression

    Raises:
        NotFoundError: If the task does not belong to the caller
        InvalidStateError: If the task is already completed
        PersistenceError: If either write fails (nothing is applied)
    """
    with span("task_service.complete_task"):
        completed_at = completed_at or datetime.now().astimezone()
        completion_date = _local_date(completed_at)

        with _store_errors("complete task"):
            async with db_client.transaction():
                task = await mark_completed(task_id=task_id, owner_id=owner_id, completed_at=completed_at)
                current = await progression_service.get_progression(owner_id=owner_id)
                new_state = progression_engine.apply_completion(current, task.xp_reward, completion_date)
                await progression_service.upsert_progression(owner_id=owner_id, state=new_state)

        old_level = current.level if current else 1
        log_with_user_context(
            logger,
            "info",
            "Completed task",
            user_id=owner_id,
            task_id=task_id,
            xp_awarded=task.xp_reward,
            new_level=new_state.level,
            streak=new_state.streak,
        )
        if new_state.level > old_level:
            logger.info("User %s leveled up from %s to %s", owner_id, old_level, new_state.level)

        return CompletionResult(
            task=task,
            progression=new_state,
            xp_awarded=task.xp_reward,
            levels_gained=new_state.level - old_level,
        )


async def delete_task(*, task_id: str, owner_id: str) -> None:
    """Delete a task owned by the caller.

    Raises:
        NotFoundError: If the task does not exist or belongs to someone else
        PersistenceError: If the store rejects the delete
    """
    with span("task_service.delete_task"):
        task = await get_task(task_id=task_id, owner_id=owner_id)

        with _store_errors("delete task"):
            await db_client.delete_record(collection=COLLECTION, record_id=task_id)

        logger.info("Deleted task '%s' for %s", task.title, owner_id)


def pending_tasks(tasks: list[Task]) -> list[Task]:
    return [task for task in tasks if task.status == TaskStatus.PENDING]


def completed_tasks(tasks: list[Task]) -> list[Task]:
    return [task for task in tasks if task.status == TaskStatus.COMPLETED]


def today_tasks(tasks: list[Task], *, today: date | None = None) -> list[Task]:
    """Tasks completed on `today` (local calendar date)."""
    today = today or date.today()
    return [
        task
        for task in completed_tasks(tasks)
        if _local_date(task.completed_at or task.created) == today
    ]

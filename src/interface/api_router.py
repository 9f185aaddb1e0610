"""JSON API router for quests, progression and profiles."""

import logging
from enum import StrEnum
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status
from pydantic import BaseModel

from src.core.config import constants
from src.core.errors import NotAuthenticatedError
from src.domain.progression import DashboardStats
from src.domain.task import Task, TaskCategory
from src.domain.update_models import ProfileUpdate
from src.domain.user import Profile, Session, User
from src.models.service_models import CompletionResult
from src.services import identity_service, profile_service, progression_service, task_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


class Credentials(BaseModel):
    """Sign-up / sign-in payload."""

    email: str
    password: str


class TaskCreateRequest(BaseModel):
    """Task creation payload; validated by the service layer."""

    title: str
    description: str | None = None
    category: str = "Work"
    xp_reward: int = 10


class TaskView(StrEnum):
    """Derived task lists."""

    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"
    TODAY = "today"


async def current_user_id(authorization: Annotated[str | None, Header()] = None) -> str:
    """Resolve the caller from an `Authorization: Bearer <token>` header."""
    if not authorization or not authorization.lower().startswith("bearer "):
        logger.debug("Request without bearer token")
        raise NotAuthenticatedError("Missing bearer token")
    return await identity_service.validate_session(authorization[len("bearer ") :].strip())


UserId = Annotated[str, Depends(current_user_id)]


@router.post("/auth/signup", status_code=status.HTTP_201_CREATED)
async def sign_up(credentials: Credentials) -> User:
    return await identity_service.sign_up(email=credentials.email, password=credentials.password)


@router.post("/auth/signin")
async def sign_in(credentials: Credentials) -> Session:
    return await identity_service.sign_in(email=credentials.email, password=credentials.password)


@router.get("/me")
async def me(user_id: UserId) -> User:
    return await identity_service.get_user(user_id=user_id)


@router.get("/tasks")
async def list_tasks(
    user_id: UserId,
    view: TaskView = TaskView.ALL,
    q: Annotated[str | None, Query(description="Case-insensitive search over title and description")] = None,
) -> list[Task]:
    """List the caller's tasks, newest first, optionally searched and narrowed to a view."""
    if q:
        tasks = await task_service.search_tasks(owner_id=user_id, query=q)
    else:
        tasks = await task_service.list_tasks(owner_id=user_id)

    if view == TaskView.PENDING:
        return task_service.pending_tasks(tasks)
    if view == TaskView.COMPLETED:
        return task_service.completed_tasks(tasks)
    if view == TaskView.TODAY:
        return task_service.today_tasks(tasks)
    return tasks


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreateRequest, user_id: UserId) -> Task:
    return await task_service.create_task(
        owner_id=user_id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        xp_reward=payload.xp_reward,
    )


@router.post("/tasks/{task_id}/complete")
async def complete_task(task_id: str, user_id: UserId) -> CompletionResult:
    return await task_service.complete_task(task_id=task_id, owner_id=user_id)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, user_id: UserId) -> Response:
    await task_service.delete_task(task_id=task_id, owner_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats")
async def stats(user_id: UserId) -> DashboardStats:
    return await progression_service.get_dashboard_stats(owner_id=user_id)


@router.get("/profile")
async def get_profile(user_id: UserId) -> Profile:
    return await profile_service.get_profile(user_id=user_id)


@router.patch("/profile")
async def update_profile(update: ProfileUpdate, user_id: UserId) -> Profile:
    return await profile_service.update_profile(user_id=user_id, update=update)


@router.put("/profile/avatar")
async def upload_avatar(
    request: Request,
    user_id: UserId,
    filename: Annotated[str, Query(description="Original file name; its extension selects the type")],
) -> Profile:
    """Upload the raw request body as the caller's avatar."""
    data = await request.body()
    return await profile_service.upload_avatar(user_id=user_id, data=data, filename=filename)


@router.delete("/profile/avatar")
async def remove_avatar(user_id: UserId) -> Profile:
    return await profile_service.remove_avatar(user_id=user_id)


@router.get("/meta")
async def meta() -> dict[str, list]:
    """Choices a client offers when creating a quest."""
    return {
        "categories": [category.value for category in TaskCategory],
        "xp_reward_tiers": list(constants.XP_REWARD_TIERS),
    }

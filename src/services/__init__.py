from src.services import (
    identity_service,
    profile_service,
    progression_engine,
    progression_service,
    task_service,
)


__all__ = [
    "identity_service",
    "profile_service",
    "progression_engine",
    "progression_service",
    "task_service",
]

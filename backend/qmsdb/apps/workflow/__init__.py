from .actions import Actor
from .errors import (
    Forbidden,
    InternalError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
    WorkflowError,
)

__all__ = [
    "Actor",
    "Forbidden",
    "InternalError",
    "InvalidTransition",
    "NotFoundError",
    "ValidationError",
    "WorkflowError",
]

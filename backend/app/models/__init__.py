"""Database models for the Flowdeck backend."""

from .auth import AuthSession, User
from .execution import Execution
from .workflow import Workflow

__all__ = ["AuthSession", "User", "Workflow", "Execution"]

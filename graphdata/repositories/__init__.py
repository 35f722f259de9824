"""
Repositories mapping graph nodes to domain entities.

All writes run inside the TransactionManager; reads return None (single
lookups) or a list (listings) rather than raising for missing entities.
"""

from .base import BaseRepository
from .process_instance import ProcessInstanceRepository
from .task import TaskRepository
from .user import UserRepository

__all__ = [
    "BaseRepository",
    "ProcessInstanceRepository",
    "TaskRepository",
    "UserRepository",
]

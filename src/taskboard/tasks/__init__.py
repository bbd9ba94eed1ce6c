from .locking import ColumnLocks
from .store import TaskStore

__all__ = ["ColumnLocks", "TaskStore"]

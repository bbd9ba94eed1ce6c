from .attachments import AttachmentManager
from .comments import CommentManager
from .subtasks import SubtaskManager
from .time_entries import TimeEntryManager
from .watchers import WatcherManager

__all__ = [
    "AttachmentManager",
    "CommentManager",
    "SubtaskManager",
    "TimeEntryManager",
    "WatcherManager",
]

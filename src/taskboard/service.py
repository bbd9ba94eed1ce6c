"""Wire storage, registry, task store and managers for one state directory."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .activity import ActivityLog
from .boards.registry import BoardRegistry
from .collaboration import AttachmentManager, CommentManager, SubtaskManager, TimeEntryManager, WatcherManager
from .config import ConcurrencySettings, get_concurrency_settings, load_config
from .storage.container import StorageContainer
from .tasks.locking import ColumnLocks
from .tasks.store import TaskStore


class TaskboardServices:
    """Everything an API or CLI front-end needs, built from ``state_dir``.

    Parameters
    ----------
    state_dir:
        The ``.taskboard/`` directory holding YAML collections and blobs.
    config:
        Parsed configuration; loaded from ``state_dir/config.yaml`` when
        omitted.
    """

    def __init__(self, state_dir: Path, config: Optional[dict[str, Any]] = None) -> None:
        if config is None:
            config, err = load_config(state_dir)
            if err:
                logger.warning("Ignoring unreadable config: {}", err)
        self.config = config
        self.concurrency: ConcurrencySettings = get_concurrency_settings(config)

        self.storage = StorageContainer(state_dir)
        self.activity = ActivityLog()
        self.boards = BoardRegistry(self.storage.boards)
        self.locks = ColumnLocks(self.concurrency)
        self.tasks = TaskStore(self.storage.tasks, self.boards, self.activity, self.locks)

        self.comments = CommentManager(self.tasks, self.activity)
        self.subtasks = SubtaskManager(self.tasks, self.activity)
        self.time_entries = TimeEntryManager(self.tasks, self.activity)
        self.watchers = WatcherManager(self.tasks, self.activity)
        self.attachments = AttachmentManager(self.tasks, self.activity, self.storage.blobs)

    @property
    def state_dir(self) -> Path:
        return self.storage.state_dir

from __future__ import annotations

from pathlib import Path

from .blobs import LocalBlobStore
from .bootstrap import STATE_FILES, ensure_state_root
from .file_repos import FileBoardRepository, FileTaskRepository


class StorageContainer:
    def __init__(self, state_dir: Path) -> None:
        self.state_dir = ensure_state_root(state_dir.resolve())

        self.boards = FileBoardRepository(self.state_dir / STATE_FILES["boards"], self.state_dir / "boards.lock")
        self.tasks = FileTaskRepository(self.state_dir / STATE_FILES["tasks"], self.state_dir / "tasks.lock")
        self.blobs = LocalBlobStore(self.state_dir / "blobs")

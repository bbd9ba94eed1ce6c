from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from ..domain.models import Board, Task
from ..errors import StorageUnavailable
from ..io_utils import FileLock, _atomic_write_yaml, _load_yaml_with_error
from .interfaces import BoardRepository, CollectionTx, TaskRepository

T = TypeVar("T")

SCHEMA_VERSION = 1


class _CollectionTx(CollectionTx[T]):
    """In-memory transaction over a list of records.

    Mutations are flushed back to disk when the owning ``transaction``
    context manager exits without an exception.
    """

    def __init__(self, items: list[T], key: Callable[[T], str]) -> None:
        self.items = items
        self.dirty = False
        self._key = key
        self._index: dict[str, int] = {key(item): i for i, item in enumerate(items)}

    def get(self, item_id: str) -> Optional[T]:
        idx = self._index.get(item_id)
        return self.items[idx] if idx is not None else None

    def list_all(self) -> list[T]:
        return list(self.items)

    def add(self, item: T) -> T:
        item_id = self._key(item)
        if item_id in self._index:
            raise ValueError(f"Record {item_id} already exists")
        self._index[item_id] = len(self.items)
        self.items.append(item)
        self.dirty = True
        return item


class _YamlCollectionRepo(Generic[T]):
    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    def _load(self) -> list[T]:
        raw, err = _load_yaml_with_error(self._path, {})
        if err:
            raise StorageUnavailable(f"Cannot read {self._key} store: {err}")
        items = raw.get(self._key, [])
        if not isinstance(items, list):
            raise StorageUnavailable(f"Cannot read {self._key} store: '{self._key}' is not a list")
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def _save(self, items: list[T]) -> None:
        payload = {"version": SCHEMA_VERSION, self._key: [self._dumper(item) for item in items]}
        try:
            _atomic_write_yaml(self._path, payload)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write {self._key} store: {exc}") from exc

    def list(self) -> list[T]:
        with self._thread_lock:
            with self._lock:
                return self._load()

    @contextmanager
    def transaction(self, key: Callable[[T], str]) -> Iterator[_CollectionTx[T]]:
        """Acquire the lock, load, yield a transaction, and save on clean exit."""
        with self._thread_lock:
            with self._lock:
                tx = _CollectionTx(self._load(), key)
                yield tx
                if tx.dirty:
                    self._save(tx.items)


class FileBoardRepository(BoardRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Board](
            path,
            lock_path,
            "boards",
            loader=Board.from_dict,
            dumper=lambda b: b.to_dict(),
        )

    def list(self) -> list[Board]:
        return self._repo.list()

    def get(self, board_id: str) -> Optional[Board]:
        for board in self.list():
            if board.id == board_id:
                return board
        return None

    def transaction(self):
        return self._repo.transaction(lambda b: b.id)


class FileTaskRepository(TaskRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Task](
            path,
            lock_path,
            "tasks",
            loader=Task.from_dict,
            dumper=lambda t: t.to_dict(),
        )

    def list(self) -> list[Task]:
        return self._repo.list()

    def get(self, task_id: str) -> Optional[Task]:
        for task in self.list():
            if task.id == task_id:
                return task
        return None

    def transaction(self):
        return self._repo.transaction(lambda t: t.id)

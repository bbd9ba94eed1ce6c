from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Generic, Optional, TypeVar

from ..domain.models import Board, Task

T = TypeVar("T")


class CollectionTx(ABC, Generic[T]):
    """Mutable view of a whole collection inside one transaction."""

    dirty: bool

    @abstractmethod
    def get(self, item_id: str) -> Optional[T]:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[T]:
        raise NotImplementedError

    @abstractmethod
    def add(self, item: T) -> T:
        raise NotImplementedError

    def mark_dirty(self) -> None:
        self.dirty = True


class BoardRepository(ABC):
    @abstractmethod
    def list(self) -> list[Board]:
        raise NotImplementedError

    @abstractmethod
    def get(self, board_id: str) -> Optional[Board]:
        raise NotImplementedError

    @abstractmethod
    def transaction(self) -> AbstractContextManager[CollectionTx[Board]]:
        raise NotImplementedError


class TaskRepository(ABC):
    @abstractmethod
    def list(self) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def get(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    def transaction(self) -> AbstractContextManager[CollectionTx[Task]]:
        raise NotImplementedError


class BlobStore(ABC):
    """External attachment storage: bytes in, ``{url, file_name}`` out."""

    @abstractmethod
    def put(self, data: bytes, file_name: str, mime_type: str) -> dict[str, Any]:
        raise NotImplementedError

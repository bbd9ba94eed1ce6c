"""File attachments stored through an external :class:`BlobStore`."""

from __future__ import annotations

from loguru import logger

from ..activity import ActivityLog
from ..domain.activity import AttachmentPayload
from ..domain.identity import Actor
from ..domain.models import Attachment
from ..errors import ValidationFailure
from ..storage.interfaces import BlobStore
from ..tasks.store import TaskStore

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


class AttachmentManager:
    def __init__(self, store: TaskStore, activity: ActivityLog, blobs: BlobStore) -> None:
        self._store = store
        self._activity = activity
        self._blobs = blobs

    def list(self, task_id: str, actor: Actor) -> list[Attachment]:
        task, _ = self._store.reading(task_id, actor)
        return list(task.attachments)

    def add(
        self,
        task_id: str,
        file_name: str,
        data: bytes,
        actor: Actor,
        mime_type: str = "application/octet-stream",
    ) -> Attachment:
        if not data:
            raise ValidationFailure("Attachment is empty", details={"field": "file"})
        if len(data) > MAX_ATTACHMENT_BYTES:
            raise ValidationFailure(
                "Attachment exceeds the 10 MiB limit",
                details={"field": "file", "size": len(data)},
            )
        with self._store.editing(task_id, actor) as (tx, task, _):
            stored = self._blobs.put(data, file_name, mime_type)
            attachment = Attachment(
                file_name=file_name,
                url=stored["url"],
                uploaded_by=actor.ref,
                size=len(data),
                mime_type=mime_type or "application/octet-stream",
            )
            task.attachments.append(attachment)
            self._activity.append(
                task,
                "attachment_added",
                actor,
                AttachmentPayload(attachment_id=attachment.id, file_name=file_name, url=attachment.url),
            )
            self._store.commit(tx, task)
        logger.info("Attached {} ({} bytes) to task {}", file_name, len(data), task_id)
        return attachment

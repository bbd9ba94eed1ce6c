from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Any

from ..errors import StorageUnavailable, ValidationFailure
from .interfaces import BlobStore

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalBlobStore(BlobStore):
    """Blob store writing attachment bytes below a local directory.

    URLs are ``<base_url>/<stored name>``; a real deployment swaps in a
    cloud-backed :class:`BlobStore` with the same contract.
    """

    def __init__(self, root: Path, base_url: str = "/blobs") -> None:
        self._root = root
        self._base_url = base_url.rstrip("/")

    def put(self, data: bytes, file_name: str, mime_type: str) -> dict[str, Any]:
        safe = _UNSAFE_CHARS.sub("_", Path(file_name).name).strip("._")
        if not safe:
            raise ValidationFailure("Attachment file name is empty", details={"field": "file_name"})
        stored = f"{uuid.uuid4().hex[:12]}-{safe}"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            (self._root / stored).write_bytes(data)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot store attachment: {exc}") from exc
        return {"url": f"{self._base_url}/{stored}", "file_name": stored}

from __future__ import annotations

from pathlib import Path

STATE_DIR_NAME = ".taskboard"

STATE_FILES = {
    "boards": "boards.yaml",
    "tasks": "tasks.yaml",
}


def ensure_state_root(state_dir: Path) -> Path:
    """Create the state directory and seed empty collection files."""
    state_dir.mkdir(parents=True, exist_ok=True)
    for file_name in STATE_FILES.values():
        target = state_dir / file_name
        if not target.exists():
            target.write_text("version: 1\n", encoding="utf-8")
    (state_dir / "blobs").mkdir(exist_ok=True)
    return state_dir

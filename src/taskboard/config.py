"""Load optional taskboard configuration from `.taskboard/config.yaml`.

Environment variables override file values so deployments can tune the
service without editing state directories.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .io_utils import _load_yaml_with_error
from .storage.bootstrap import STATE_DIR_NAME

CONFIG_FILE = "config.yaml"


@dataclass(frozen=True)
class ConcurrencySettings:
    """Bounds for per-column critical sections."""

    lock_timeout_seconds: float = 2.0
    move_retries: int = 3
    backoff_seconds: float = 0.05


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


def resolve_state_dir(project_dir: Optional[Path] = None) -> Path:
    """Return the state directory, honoring ``TASKBOARD_STATE_DIR``."""
    env_dir = os.getenv("TASKBOARD_STATE_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    base = project_dir if project_dir is not None else Path.cwd()
    return (base / STATE_DIR_NAME).resolve()


def load_config(state_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        state_dir: The `.taskboard` directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = state_dir / CONFIG_FILE
    data, err = _load_yaml_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _env_or(name: str, value: Any) -> Any:
    raw = os.getenv(name)
    return raw if raw not in (None, "") else value


def get_concurrency_settings(config: dict[str, Any]) -> ConcurrencySettings:
    """Extract the `concurrency` block, applying env overrides and sane floors."""
    defaults = ConcurrencySettings()
    raw = _get_nested(config, "concurrency")
    block = raw if isinstance(raw, dict) else {}
    try:
        timeout = float(_env_or("TASKBOARD_LOCK_TIMEOUT", block.get("lock_timeout_seconds", defaults.lock_timeout_seconds)))
        retries = int(_env_or("TASKBOARD_MOVE_RETRIES", block.get("move_retries", defaults.move_retries)))
        backoff = float(block.get("backoff_seconds", defaults.backoff_seconds))
    except (TypeError, ValueError):
        return defaults
    return ConcurrencySettings(
        lock_timeout_seconds=max(timeout, 0.01),
        move_retries=max(retries, 1),
        backoff_seconds=max(backoff, 0.0),
    )


def get_logging_settings(config: dict[str, Any]) -> LoggingSettings:
    level = _env_or("TASKBOARD_LOG_LEVEL", _get_nested(config, "logging", "level"))
    if isinstance(level, str) and level.strip():
        return LoggingSettings(level=level.strip().upper())
    return LoggingSettings()

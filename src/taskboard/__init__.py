"""Provide the public `taskboard` package exports."""

from __future__ import annotations

from .service import TaskboardServices

__all__ = ["TaskboardServices"]

from .registry import DEFAULT_COLUMNS, BoardRegistry

__all__ = ["BoardRegistry", "DEFAULT_COLUMNS"]

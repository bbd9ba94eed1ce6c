from .container import StorageContainer

__all__ = ["StorageContainer"]

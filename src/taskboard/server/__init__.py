"""REST server for taskboard."""

from .api import create_app

__all__ = ["create_app"]

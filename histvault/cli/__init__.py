"""Command line interface for histvault."""

from .main import app, create_app

__all__ = ["app", "create_app"]

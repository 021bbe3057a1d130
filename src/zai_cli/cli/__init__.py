"""
CLI interface package for Zai CLI.

This package contains the typer application, the chat loop and the
configuration commands.
"""

from .app import app

__all__ = ["app"]

"""
Configuration package for Zai CLI.

This package contains the settings model, the persisted config file store
and the .env loader.
"""

__all__ = ["settings", "store", "env_loader"]

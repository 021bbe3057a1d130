"""
Zai CLI - an AI coding assistant for the terminal.

This package forwards prompts to Z.ai's hosted GLM models and prints the
responses, either as one-shot queries or in an interactive chat session.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from typing import Final

# Package metadata
VERSION: Final[str] = __version__
PACKAGE_NAME: Final[str] = "zai-cli"
USER_AGENT: Final[str] = f"{PACKAGE_NAME}/{VERSION}"

__all__ = [
    "__version__",
    "VERSION",
    "PACKAGE_NAME",
    "USER_AGENT",
]

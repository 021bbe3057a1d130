"""
System prompt generation for Zai CLI.

The default prompt frames the model as a terminal coding assistant. Users
can replace it with their own file through ``ZAI_SYSTEM_MD`` or with the
``--system`` option.
"""

import os
import platform
from pathlib import Path
from typing import Optional

DEFAULT_SYSTEM_PROMPT = """You are Zai, an AI coding assistant running in the user's terminal.

Help with software engineering tasks: explaining code, writing and reviewing
changes, debugging errors and answering technical questions.

# Guidelines
- Be concise and direct. The terminal renders plain text and Markdown.
- Put code in fenced blocks tagged with the language.
- When a request is ambiguous, state the assumption you made.
- Do not invent file contents, command output or APIs you have not been shown.
"""


def get_system_prompt(
    custom_prompt: Optional[str] = None,
    working_directory: Optional[Path] = None,
) -> str:
    """
    Build the system prompt for a chat.

    Precedence: ``custom_prompt`` argument, then the file named by
    ``ZAI_SYSTEM_MD``, then the built-in prompt. The environment suffix
    (OS and working directory) is appended in every case.

    Raises:
        FileNotFoundError: If ZAI_SYSTEM_MD names a file that does not exist
    """
    if custom_prompt:
        base_prompt = custom_prompt
    else:
        base_prompt = _load_system_md() or DEFAULT_SYSTEM_PROMPT

    return base_prompt.rstrip() + "\n\n" + _environment_context(working_directory)


def _load_system_md() -> Optional[str]:
    system_md_var = os.environ.get("ZAI_SYSTEM_MD", "").strip()
    if not system_md_var or system_md_var.lower() in ["0", "false"]:
        return None

    system_md_path = Path(system_md_var).expanduser().resolve()
    if not system_md_path.exists():
        raise FileNotFoundError(f"Missing system prompt file: {system_md_path}")

    return system_md_path.read_text(encoding="utf-8")


def _environment_context(working_directory: Optional[Path]) -> str:
    cwd = Path(working_directory or Path.cwd())
    return (
        "# Environment\n"
        f"- Operating system: {platform.system()}\n"
        f"- Working directory: {cwd}"
    )

"""
Persisted configuration store for Zai CLI.

The store owns a single JSON file (``~/.config/zai/config.json`` by
default) holding plain parameters such as the selected model at the top
level and secrets such as the API key under a ``"secrets"`` object:

    {
      "model": "glm-4.6",
      "secrets": {"api_key": "..."}
    }

The file is created on the first ``zai config`` run and rewritten as a
whole on every edit.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import commentjson

logger = logging.getLogger(__name__)

SECRETS_KEY = "secrets"
CONFIG_FILE_MODE = 0o600


@dataclass
class StoreState:
    """In-memory view of the config file."""
    params: Dict[str, Any] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    exists: bool = False
    errors: List[str] = field(default_factory=list)


class ConfigStore:
    """
    Read and write the user configuration file.

    Reads tolerate comments (commentjson). A file that cannot be parsed is
    reported through ``errors`` and treated as empty, so a broken file never
    prevents the CLI from starting; the next write replaces it.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._state: Optional[StoreState] = None

    @property
    def state(self) -> StoreState:
        if self._state is None:
            self._state = self.load()
        return self._state

    @property
    def exists(self) -> bool:
        return self.state.exists

    @property
    def errors(self) -> List[str]:
        return list(self.state.errors)

    def load(self) -> StoreState:
        """Load the config file from disk.

        Returns:
            Fresh store state (also cached on the instance)
        """
        state = StoreState(exists=self.path.exists())

        if not state.exists:
            logger.debug(f"Config file not found: {self.path}")
            self._state = state
            return state

        try:
            content = self.path.read_text(encoding="utf-8")
            parsed = commentjson.loads(content) if content.strip() else {}

            if not isinstance(parsed, dict):
                raise ValueError("top-level value must be an object")

            secrets = parsed.pop(SECRETS_KEY, None) or {}
            if not isinstance(secrets, dict):
                raise ValueError(f"'{SECRETS_KEY}' must be an object")

            state.params = parsed
            state.secrets = {key: str(value) for key, value in secrets.items() if value is not None}
            logger.debug(f"Loaded config from {self.path}")

        except ValueError as e:
            error_msg = f"Invalid config in {self.path}: {e}"
            logger.error(error_msg)
            state.errors.append(error_msg)

        except Exception as e:
            error_msg = f"Error loading {self.path}: {e}"
            logger.error(error_msg)
            state.errors.append(error_msg)

        self._state = state
        return state

    def get_param(self, key: str, default: Any = None) -> Any:
        if key not in self.state.params:
            return default
        return _resolve_env_vars(self.state.params[key])

    def set_param(self, key: str, value: Any) -> None:
        """Set a parameter and persist the file."""
        if key == SECRETS_KEY:
            raise ValueError(f"'{SECRETS_KEY}' is reserved, use set_secret()")
        self.state.params[key] = value
        self.save()
        logger.info(f"Saved parameter {key} to {self.path}")

    def get_secret(self, key: str) -> Optional[str]:
        value = self.state.secrets.get(key)
        return _resolve_env_vars(value) if value is not None else None

    def set_secret(self, key: str, value: str) -> None:
        """Set a secret and persist the file."""
        self.state.secrets[key] = value
        self.save()
        logger.info(f"Saved secret {key} to {self.path}")

    def save(self) -> None:
        """Write the whole file, owner read/write only.

        Values are written as they were read, so ``$VAR`` references
        survive an edit of another key.

        Raises:
            OSError: If the file cannot be written
        """
        state = self.state
        data: Dict[str, Any] = dict(state.params)
        if state.secrets:
            data[SECRETS_KEY] = dict(state.secrets)

        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Create with restricted permissions before any secret is written
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            commentjson.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.chmod(self.path, CONFIG_FILE_MODE)

        state.exists = True
        state.errors.clear()

    def as_dict(self) -> Dict[str, Any]:
        """Parameters merged with secrets, with ``$VAR`` references resolved."""
        merged = dict(self.state.params)
        merged.update(self.state.secrets)
        return _resolve_env_vars(merged)

    def get_summary(self) -> Dict[str, Any]:
        state = self.state
        return {
            "path": str(self.path),
            "exists": state.exists,
            "params": sorted(state.params),
            "secrets": sorted(state.secrets),
            "errors": list(state.errors),
        }


_ENV_VAR_PATTERN = re.compile(r'\$(?:(\w+)|\{([^}]+)\})')


def _resolve_env_vars(obj: Any) -> Any:
    """Resolve $VAR and ${VAR} references in string values."""
    if isinstance(obj, str):
        return _ENV_VAR_PATTERN.sub(_replace_env_var, obj)
    elif isinstance(obj, dict):
        return {key: _resolve_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_resolve_env_vars(item) for item in obj]
    return obj


def _replace_env_var(match: "re.Match[str]") -> str:
    var_name = match.group(1) or match.group(2)
    env_value = os.environ.get(var_name)
    if env_value is None:
        logger.warning(f"Environment variable not found: {var_name}")
        return match.group(0)
    return env_value

"""
.env file loading for Zai CLI.

Lets users keep ``ZAI_API_KEY`` and friends in a project or home ``.env``
file instead of exporting them in every shell.
"""

from pathlib import Path
from typing import Optional, Dict, List
import logging

from dotenv import dotenv_values, load_dotenv

logger = logging.getLogger(__name__)


class EnvFileLoader:
    """
    .env file loader with hierarchical search.

    Search order (stops at first file found):
    1. Current directory: .zai/.env → .env
    2. Parent directories (up to git root or home): .zai/.env → .env
    3. Home directory: ~/.zai/.env → ~/.env

    Variables already present in the process environment always win.
    """

    CONFIG_DIR_NAME = ".zai"
    ENV_FILE_NAME = ".env"

    def __init__(self, working_directory: Optional[Path] = None, home_directory: Optional[Path] = None):
        """Initialize env file loader.

        Args:
            working_directory: Starting directory for search
            home_directory: Home directory override (defaults to Path.home())
        """
        self.working_directory = Path(working_directory or Path.cwd()).resolve()
        self.home_directory = Path(home_directory or Path.home()).resolve()
        self._loaded_file: Optional[Path] = None
        self._loaded_vars: Dict[str, str] = {}

    def load_env_file(self) -> Optional[Path]:
        """Load environment variables from the first .env file found.

        Returns:
            Path to loaded .env file or None if none found
        """
        env_file_path = self._find_env_file()

        if not env_file_path:
            logger.debug("No .env file found in search path")
            return None

        try:
            load_dotenv(env_file_path, override=False)
            self._loaded_file = env_file_path
            self._loaded_vars = {
                key: value
                for key, value in dotenv_values(env_file_path).items()
                if value is not None
            }
            logger.info(f"Loaded environment variables from: {env_file_path}")
            return env_file_path

        except OSError as e:
            logger.error(f"Error loading .env file {env_file_path}: {e}")
            return None

    def get_loaded_file(self) -> Optional[Path]:
        return self._loaded_file

    def get_loaded_vars(self) -> Dict[str, str]:
        """Get variables read from the loaded .env file.

        Returns:
            Dictionary of loaded environment variables
        """
        return self._loaded_vars.copy()

    def get_search_paths(self) -> List[Path]:
        """Get list of all paths that would be searched for .env files.

        Returns:
            List of search paths in order
        """
        search_paths = []
        current_dir = self.working_directory

        while True:
            search_paths.append(current_dir / self.CONFIG_DIR_NAME / self.ENV_FILE_NAME)
            search_paths.append(current_dir / self.ENV_FILE_NAME)

            if self._should_stop_search(current_dir) or current_dir == current_dir.parent:
                break
            current_dir = current_dir.parent

        home_paths = [
            self.home_directory / self.CONFIG_DIR_NAME / self.ENV_FILE_NAME,
            self.home_directory / self.ENV_FILE_NAME,
        ]
        for path in home_paths:
            if path not in search_paths:
                search_paths.append(path)

        return search_paths

    def _find_env_file(self) -> Optional[Path]:
        for path in self.get_search_paths():
            if path.is_file():
                return path
        return None

    def _should_stop_search(self, directory: Path) -> bool:
        """Stop at a git repository root or the home directory."""
        if (directory / ".git").exists():
            return True
        return directory == self.home_directory

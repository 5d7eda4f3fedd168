"""
Where habit-ledger keeps its files.

Everything lives under one working directory: ``config.json`` at the top,
the SQLite ledger, the sync queue, habit dependencies and the journal under
``data/``, import backups under
``backups/``.
"""

import os
import sys
from pathlib import Path
from typing import Optional
import logging


class PathManager:
    """Resolves the working directory once and derives every file path from it."""

    APP_DIR_NAME = "habit-ledger"
    HOME_ENV_VAR = "HABIT_LEDGER_HOME"

    # File names
    CONFIG_FILE = "config.json"
    DATABASE_FILE = "ledger.db"
    SYNC_QUEUE_FILE = "sync_queue.json"
    DEPENDENCIES_FILE = "dependencies.json"
    JOURNAL_FILE = "journal.json"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._working_dir: Optional[Path] = None

    def _default_user_dir(self) -> Path:
        """Platform-appropriate per-user data directory."""
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / self.APP_DIR_NAME
        if sys.platform.startswith("win"):
            appdata = os.environ.get("APPDATA")
            if appdata:
                return Path(appdata) / self.APP_DIR_NAME
            return Path.home() / "AppData" / "Roaming" / self.APP_DIR_NAME
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / self.APP_DIR_NAME
        return Path.home() / ".config" / self.APP_DIR_NAME

    @property
    def working_dir(self) -> Path:
        """
        Get the working directory for habit-ledger data.

        Priority order:
        1. HABIT_LEDGER_HOME environment variable (explicit override)
        2. Platform user data directory
        """
        if self._working_dir is not None:
            return self._working_dir

        env_override = os.environ.get(self.HOME_ENV_VAR)
        if env_override:
            env_path = Path(env_override).expanduser().resolve()
            self.logger.debug(f"Using {self.HOME_ENV_VAR} override: {env_path}")
            self._working_dir = env_path
        else:
            self._working_dir = self._default_user_dir()

        return self._working_dir

    def ensure_directories(self) -> None:
        """Create the working and data directories if missing."""
        for directory in (self.working_dir, self.data_dir, self.backup_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        """Directory holding the ledger database and sync queue."""
        return self.working_dir / "data"

    @property
    def backup_dir(self) -> Path:
        """Directory for export snapshots taken before destructive imports."""
        return self.working_dir / "backups"

    @property
    def config_path(self) -> Path:
        return self.working_dir / self.CONFIG_FILE

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.DATABASE_FILE

    @property
    def sync_queue_path(self) -> Path:
        return self.data_dir / self.SYNC_QUEUE_FILE

    @property
    def dependencies_path(self) -> Path:
        return self.data_dir / self.DEPENDENCIES_FILE

    @property
    def journal_path(self) -> Path:
        return self.data_dir / self.JOURNAL_FILE


_path_manager: Optional[PathManager] = None


def get_path_manager() -> PathManager:
    """Process-wide PathManager, created on first use."""
    global _path_manager
    if _path_manager is None:
        _path_manager = PathManager()
    return _path_manager


def reset_path_manager() -> None:
    """Drop the cached path manager so environment changes take effect."""
    global _path_manager
    _path_manager = None


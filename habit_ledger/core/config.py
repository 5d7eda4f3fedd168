"""
Loading and saving the habit-ledger configuration file.
"""

import os
from pathlib import Path
from typing import Optional

from .models import LedgerConfig
from .paths import get_path_manager


def get_default_config_path() -> Path:
    return get_path_manager().config_path


def load_config(config_path: Optional[str] = None) -> LedgerConfig:
    """
    Read the config file, falling back to defaults when it is missing or corrupt.

    Raises ConfigurationError when the file parses but holds invalid values.
    """
    if config_path is None:
        config_path = str(get_default_config_path())

    return LedgerConfig.load_from_file(config_path)


def save_config(config: LedgerConfig, config_path: Optional[str] = None) -> None:
    """Write ``config`` to ``config_path`` (default: ``config.json`` in the working dir)."""
    if config_path is None:
        manager = get_path_manager()
        manager.ensure_directories()
        config_path = str(manager.config_path)
    else:
        parent = os.path.dirname(os.path.abspath(os.path.expanduser(config_path)))
        os.makedirs(parent, exist_ok=True)

    config.save_to_file(config_path)


def get_data_dir() -> Path:
    """Directory holding the ledger database and sync queue, created on demand."""
    manager = get_path_manager()
    manager.ensure_directories()
    return manager.data_dir


def get_backup_dir() -> Path:
    manager = get_path_manager()
    manager.ensure_directories()
    return manager.backup_dir

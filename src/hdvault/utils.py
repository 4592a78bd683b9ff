"""
Shared utility functions for hdvault.

Contains path helpers and settings loading.

Settings live in <app dir>/settings.json; every key is optional:
    {
        "wallet_dir": "/path/to/wallets",
        "log_level": "INFO",
        "log_retention_days": 0,
        "argon2_time_cost": 3,
        "argon2_memory_cost": 65536,
        "argon2_parallelism": 4
    }
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .crypto import ARGON2_MEMORY_COST, ARGON2_PARALLELISM, ARGON2_TIME_COST

logger = logging.getLogger(__name__)

# Overrides the application directory
HOME_ENV_VAR = "HDVAULT_HOME"


def get_app_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        app_dir = Path(override)
    else:
        app_dir = Path.home() / ".hdvault"

    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_wallet_dir() -> Path:
    """Get the wallet storage directory."""
    return get_app_dir() / "wallets"


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_app_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def get_settings_path() -> Path:
    """Get path to settings file."""
    return get_app_dir() / "settings.json"


@dataclass
class Settings:
    """Runtime configuration."""
    wallet_dir: Path
    log_level: str = "INFO"
    log_retention_days: int = 0   # 0 = console only, no log files
    argon2_time_cost: int = ARGON2_TIME_COST
    argon2_memory_cost: int = ARGON2_MEMORY_COST
    argon2_parallelism: int = ARGON2_PARALLELISM


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from disk.

    A missing file gives the defaults; an unreadable one logs a warning
    and gives the defaults.
    """
    settings_path = Path(path) if path is not None else get_settings_path()
    data = {}
    if settings_path.exists():
        try:
            with open(settings_path, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings must be a JSON object")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load settings: {e}")
            data = {}

    defaults = Settings(wallet_dir=get_wallet_dir())
    return Settings(
        wallet_dir=Path(data.get("wallet_dir", defaults.wallet_dir)),
        log_level=str(data.get("log_level", defaults.log_level)),
        log_retention_days=int(data.get("log_retention_days", defaults.log_retention_days)),
        argon2_time_cost=int(data.get("argon2_time_cost", defaults.argon2_time_cost)),
        argon2_memory_cost=int(data.get("argon2_memory_cost", defaults.argon2_memory_cost)),
        argon2_parallelism=int(data.get("argon2_parallelism", defaults.argon2_parallelism)),
    )

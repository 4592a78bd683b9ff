"""
Logging - Logging configuration and log file housekeeping.

Library modules only create loggers. Applications embedding hdvault call
configure_logging() once at startup if they want output.

Log files are written only when settings.log_retention_days is positive:
one file per day (hdvault-YYYY-MM-DD.log), expired files removed at startup.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional
import logging

from .utils import Settings, get_logs_dir, load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
LOG_PREFIX = "hdvault-"
LOG_DATE_FORMAT = "%Y-%m-%d"


def configure_logging(settings: Optional[Settings] = None) -> Optional[Path]:
    """
    Send log records to the console, and to today's log file if enabled.

    Leaves logging alone when the root logger already has handlers.

    Args:
        settings: Settings to apply (default: load_settings())

    Returns:
        The log file being written, or None
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return None
    if settings is None:
        settings = load_settings()

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
    root_logger.addHandler(console_handler)

    if settings.log_retention_days <= 0:
        return None

    removed = cleanup_old_logs(settings.log_retention_days)
    log_file = get_log_file_path()
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(file_handler)
    if removed:
        logger.info(f"Removed {removed} expired log file(s)")
    return log_file


def get_log_file_path(date: Optional[datetime] = None) -> Path:
    """Get the log file path for a specific date (defaults to today)."""
    if date is None:
        date = datetime.now()
    return get_logs_dir() / f"{LOG_PREFIX}{date.strftime(LOG_DATE_FORMAT)}.log"


def _log_file_date(path: Path) -> Optional[datetime]:
    try:
        return datetime.strptime(path.stem[len(LOG_PREFIX):], LOG_DATE_FORMAT)
    except ValueError:
        return None


def cleanup_old_logs(retention_days: int) -> int:
    """
    Delete daily log files older than retention_days.

    Files whose names carry no date are left alone.

    Returns:
        Number of files deleted
    """
    if retention_days < 0:
        return 0

    cutoff = datetime.now() - timedelta(days=retention_days)
    deleted = 0
    for path in get_logs_dir().glob(f"{LOG_PREFIX}*.log"):
        file_date = _log_file_date(path)
        if file_date is None or file_date >= cutoff:
            continue
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Could not delete old log file {path.name}: {e}")
            continue
        deleted += 1
    return deleted

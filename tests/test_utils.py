import json
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta

import pytest

from hdvault import Settings, load_settings
from hdvault.crypto import ARGON2_MEMORY_COST
from hdvault.logging import cleanup_old_logs, configure_logging, get_log_file_path
from hdvault.utils import get_app_dir, get_logs_dir, get_settings_path, get_wallet_dir


@pytest.fixture
def app_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HDVAULT_HOME", str(home))
    return home


def test_app_dir_override(app_home):
    assert get_app_dir() == app_home
    assert app_home.is_dir()
    assert get_wallet_dir() == app_home / "wallets"
    assert get_logs_dir() == app_home / "logs"
    assert get_settings_path() == app_home / "settings.json"


def test_load_settings_defaults(app_home):
    settings = load_settings()

    assert settings.wallet_dir == app_home / "wallets"
    assert settings.log_level == "INFO"
    assert settings.log_retention_days == 0
    assert settings.argon2_memory_cost == ARGON2_MEMORY_COST


def test_load_settings_overrides(app_home, tmp_path):
    (app_home / "settings.json").write_text(json.dumps({
        "wallet_dir": str(tmp_path / "elsewhere"),
        "log_level": "DEBUG",
        "argon2_time_cost": 1,
    }))

    settings = load_settings()

    assert settings.wallet_dir == tmp_path / "elsewhere"
    assert settings.log_level == "DEBUG"
    assert settings.argon2_time_cost == 1
    assert settings.argon2_memory_cost == ARGON2_MEMORY_COST


@pytest.mark.parametrize("contents", ["not json", "[1, 2]"])
def test_load_settings_bad_file(app_home, caplog, contents):
    (app_home / "settings.json").write_text(contents)

    with caplog.at_level(logging.WARNING):
        settings = load_settings()

    assert settings.log_level == "INFO"
    assert "Failed to load settings" in caplog.text


def test_load_settings_explicit_path(app_home, tmp_path):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"log_retention_days": 7}))

    assert load_settings(path).log_retention_days == 7


def test_log_file_path(app_home):
    path = get_log_file_path(datetime(2024, 3, 9))

    assert path == app_home / "logs" / "hdvault-2024-03-09.log"


def test_cleanup_old_logs(app_home):
    today = datetime.now()
    old = get_log_file_path(today - timedelta(days=10))
    recent = get_log_file_path(today - timedelta(days=1))
    unrelated = get_logs_dir() / "hdvault-notes.log"
    for path in (old, recent, unrelated):
        path.write_text("log")

    assert cleanup_old_logs(5) == 1
    assert not old.exists()
    assert recent.exists()
    assert unrelated.exists()

    assert cleanup_old_logs(-1) == 0
    assert recent.exists()


@contextmanager
def bare_root_logger():
    # pytest attaches its capture handlers for the duration of each test
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    try:
        yield root
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_configure_logging_with_file(app_home):
    settings = Settings(wallet_dir=app_home / "wallets", log_level="debug", log_retention_days=3)
    expired = get_log_file_path(datetime.now() - timedelta(days=30))
    expired.write_text("old")

    with bare_root_logger() as root:
        log_file = configure_logging(settings)

        assert log_file == get_log_file_path()
        assert not expired.exists()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("hdvault.test").debug("hello")
        for handler in root.handlers:
            handler.flush()
        assert "[DEBUG] hdvault.test: hello" in log_file.read_text()

        # A second call leaves the existing configuration alone
        assert configure_logging(Settings(wallet_dir=app_home, log_level="ERROR")) is None
        assert len(root.handlers) == 2
        assert root.level == logging.DEBUG


def test_configure_logging_console_only(app_home):
    with bare_root_logger() as root:
        assert configure_logging(Settings(wallet_dir=app_home, log_level="bogus")) is None
        assert len(root.handlers) == 1
        assert root.level == logging.INFO
    assert list(get_logs_dir().iterdir()) == []

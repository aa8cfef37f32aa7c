from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from lpvault.config import Settings
from lpvault.logging_utils import JsonFormatter


@pytest.fixture(autouse=True)
def isolate_settings_from_host_env(monkeypatch: pytest.MonkeyPatch):
    original_env_file = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    settings_env_keys = {
        field.alias for field in Settings.model_fields.values() if isinstance(field.alias, str)
    }
    for key in list(os.environ):
        if key in settings_env_keys:
            monkeypatch.delenv(key, raising=False)

    yield

    Settings.model_config["env_file"] = original_env_file


@pytest.fixture(autouse=True)
def isolate_default_state_db_per_test(
    isolate_settings_from_host_env: None,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    del isolate_settings_from_host_env
    monkeypatch.setenv("STATE_DB_PATH", str(tmp_path / "lpvault_state.sqlite"))


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    level = root.level

    yield

    for handler in list(root.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)

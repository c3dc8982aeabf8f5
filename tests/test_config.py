import os
import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from deskpad.config import load_settings

ENV_NAMES = (
    "DESKPAD_DATA_DIR",
    "DESKPAD_LOG_DIR",
    "DESKPAD_LOG_LEVEL",
    "DESKPAD_WRITE_DELAY",
    "DESKPAD_BACKUP_INTERVAL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    # Keep load_dotenv() away from any .env in the working tree
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv() writes os.environ directly, behind monkeypatch's back
    for name in ENV_NAMES:
        os.environ.pop(name, None)


def test_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "missing.env"))
    assert settings.data_dir == Path("data")
    assert settings.log_dir == Path("logs")
    assert settings.log_level == "DEBUG"
    assert settings.write_delay == 0
    assert settings.backup_interval == 300


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("DESKPAD_DATA_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("DESKPAD_LOG_LEVEL", "info")
    monkeypatch.setenv("DESKPAD_WRITE_DELAY", "0.5")

    settings = load_settings(str(tmp_path / "missing.env"))
    assert settings.data_dir == tmp_path / "store"
    assert settings.log_level == "INFO"
    assert settings.write_delay == 0.5


def test_env_file_is_read(monkeypatch, tmp_path):
    env_file = tmp_path / "deskpad.env"
    env_file.write_text("DESKPAD_BACKUP_INTERVAL=60\nDESKPAD_LOG_DIR=var/log\n")

    settings = load_settings(str(env_file))
    assert settings.backup_interval == 60
    assert settings.log_dir == Path("var/log")


@pytest.mark.parametrize("name,value", [
    ("DESKPAD_LOG_LEVEL", "LOUD"),
    ("DESKPAD_WRITE_DELAY", "soon"),
    ("DESKPAD_BACKUP_INTERVAL", "-5"),
    ("DESKPAD_DATA_DIR", "   "),
])
def test_invalid_values(monkeypatch, tmp_path, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError):
        load_settings(str(tmp_path / "missing.env"))

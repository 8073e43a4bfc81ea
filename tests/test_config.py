"""Tests for script_craft.config."""

import os
from pathlib import Path

import pytest

from script_craft.config import DEFAULT_BASE_URL, DEFAULT_MOCK_DELAY, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GEMINI_API_KEY", "API_KEY", "GEMINI_BASE_URL", "SCRIPT_CRAFT_MOCK_DELAY", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.env")
    assert config.api_key == ""
    assert not config.has_credential
    assert config.base_url == DEFAULT_BASE_URL
    assert config.mock_delay == DEFAULT_MOCK_DELAY


def test_reads_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "k1")
    monkeypatch.setenv("SCRIPT_CRAFT_MOCK_DELAY", "0")
    config = load_config(tmp_path / "missing.env")
    assert config.api_key == "k1"
    assert config.has_credential
    assert config.mock_delay == 0.0


def test_api_key_fallback(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("API_KEY", "k2")
    assert load_config(tmp_path / "missing.env").api_key == "k2"


def test_env_file(tmp_path: Path) -> None:
    env = tmp_path / ".env"
    env.write_text("GEMINI_BASE_URL=http://proxy.local\nLOG_LEVEL=DEBUG\n")
    config = load_config(env)
    assert config.base_url == "http://proxy.local"
    assert config.log_level == "DEBUG"
    # load_dotenv writes into os.environ
    os.environ.pop("GEMINI_BASE_URL", None)
    os.environ.pop("LOG_LEVEL", None)

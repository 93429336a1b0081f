from pathlib import Path

import pytest
import yaml

from colorgg.configuration.ai_settings import DEFAULT_BASE_URL, AISettings
from colorgg.configuration.app_configuration import AppConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path, tmp_path: Path) -> None:
    config_payload = {
        "ai_settings": {
            "base_url": "http://localhost:8000/v1",
            "model_name": "mod-model",
            "request_timeout_seconds": 12,
            "json_mode": False,
            "sampling_parameters": {"temperature": 0.1},
        },
        "moderation": {
            "store_path": str(tmp_path / "store.yml"),
            "context_size": 5,
            "restraint_timeout_days": 3,
            "reviewer_search_timeout_seconds": 2.5,
        },
        "audit": {"db_path": str(tmp_path / "audit.db"), "memory_limit": 10},
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    ai_settings = config.ai_settings
    assert ai_settings.base_url == "http://localhost:8000/v1"
    assert ai_settings.model_name == "mod-model"
    assert ai_settings.request_timeout_seconds == pytest.approx(12.0)
    assert ai_settings.json_mode is False
    assert ai_settings.sampling_parameters == {"temperature": 0.1}
    assert config.store_path == (tmp_path / "store.yml").resolve()
    assert config.context_size == 5
    assert config.restraint_timeout_days == 3
    assert config.reviewer_search_timeout == pytest.approx(2.5)
    assert config.audit_db_path == (tmp_path / "audit.db").resolve()
    assert config.audit_memory_limit == 10


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.context_size == 10
    assert config.restraint_timeout_days == 7
    assert config.summary_history == 50
    assert config.ai_settings.base_url == DEFAULT_BASE_URL
    assert config.ai_settings.request_timeout_seconds == pytest.approx(30.0)


def test_app_config_ignores_non_mapping_sections(config_path: Path) -> None:
    config_path.write_text("moderation: [1, 2]\nai_settings: nope\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.context_size == 10
    assert config.ai_settings.model_name == "openai"


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("moderation:\n  context_size: 4\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.context_size == 4

    config_path.write_text("moderation:\n  context_size: 8\n", encoding="utf-8")
    config.reload()
    assert config.context_size == 8
    assert config.get("moderation") == {"context_size": 8}


def test_ai_settings_api_key_resolution(monkeypatch) -> None:
    monkeypatch.setenv("CUSTOM_KEY", "secret")
    assert AISettings({"api_key": "explicit"}).api_key == "explicit"
    assert AISettings({"api_key_env": "CUSTOM_KEY"}).api_key == "secret"

    monkeypatch.delenv("AI_API_KEY", raising=False)
    assert AISettings({}).api_key == "not-needed"

import pytest
from pydantic import ValidationError

from task_pilot.config import Settings, load_settings

ENV_VARS = [
    "TASKPILOT_API_URL",
    "TASKPILOT_API_TOKEN",
    "TASKPILOT_TOOLS_PREFIX",
    "TASKPILOT_PROJECT_ID",
    "TASKPILOT_RESOLUTION_THRESHOLD",
    "TASKPILOT_HTTP_TIMEOUT",
    "TASKPILOT_CHAT_BACKEND",
    "TASKPILOT_LOG_LEVEL",
    "OPENAI_API_BASE_URL",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "GITHUB_TOKEN",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()
    assert settings.api_base_url == "http://localhost:3000/api"
    assert settings.resolution_threshold == 0.3
    assert settings.benign_conflict_tools == frozenset({"link-branch"})
    assert settings.chat_backend == "openai"
    assert settings.log_level == "WARNING"


def test_environment_overrides(clean_env):
    clean_env.setenv("TASKPILOT_API_URL", "https://tracker.example/api")
    clean_env.setenv("TASKPILOT_RESOLUTION_THRESHOLD", "0.5")
    clean_env.setenv("TASKPILOT_CHAT_BACKEND", "http")
    clean_env.setenv("TASKPILOT_LOG_LEVEL", "debug")
    clean_env.setenv("GITHUB_TOKEN", "ghp_x")

    settings = load_settings()

    assert settings.api_base_url == "https://tracker.example/api"
    assert settings.resolution_threshold == 0.5
    assert settings.chat_backend == "http"
    assert settings.log_level == "DEBUG"
    assert settings.openai_api_key == "ghp_x"


def test_threshold_must_be_a_fraction():
    with pytest.raises(ValidationError):
        Settings(resolution_threshold=1.5)

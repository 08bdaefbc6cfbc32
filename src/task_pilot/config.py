# config.py
# Runtime settings. Values come from the process environment, with a local
# .env file loaded first.

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    api_base_url: str = Field("http://localhost:3000/api", description="Root of the task-tracking API.")
    api_token: str | None = Field(default=None, description="Bearer token for the task-tracking API.")
    tools_prefix: str = Field("/tools", description="Path prefix of the tool endpoints.")
    default_project_id: str | None = Field(default=None, description="Ambient project for reader tools.")
    resolution_threshold: float = Field(0.3, ge=0.0, le=1.0)
    http_timeout: float = Field(15.0, gt=0)
    benign_conflict_tools: frozenset[str] = Field(default=frozenset({"link-branch"}))

    chat_backend: Literal["openai", "http"] = "openai"
    openai_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


def load_settings() -> Settings:
    """Build Settings from the environment. Unset variables keep their defaults."""
    load_dotenv()

    env = {
        "api_base_url": os.getenv("TASKPILOT_API_URL"),
        "api_token": os.getenv("TASKPILOT_API_TOKEN"),
        "tools_prefix": os.getenv("TASKPILOT_TOOLS_PREFIX"),
        "default_project_id": os.getenv("TASKPILOT_PROJECT_ID"),
        "resolution_threshold": os.getenv("TASKPILOT_RESOLUTION_THRESHOLD"),
        "http_timeout": os.getenv("TASKPILOT_HTTP_TIMEOUT"),
        "chat_backend": os.getenv("TASKPILOT_CHAT_BACKEND"),
        "log_level": os.getenv("TASKPILOT_LOG_LEVEL", "").upper() or None,
        "openai_base_url": os.getenv("OPENAI_API_BASE_URL"),
        "openai_api_key": os.getenv("OPENAI_API_KEY") or os.getenv("GITHUB_TOKEN"),
        "openai_model": os.getenv("OPENAI_MODEL"),
    }
    return Settings.model_validate({k: v for k, v in env.items() if v is not None})

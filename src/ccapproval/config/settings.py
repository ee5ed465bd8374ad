from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ccapproval.errors import ConfigurationError

DEFAULT_DANGEROUS_TOOLS: tuple[str, ...] = ("Bash", "Write", "Edit", "MultiEdit")

# 12 hours: a human will eventually look at Slack.
DEFAULT_TIMEOUT_SECONDS = 12 * 60 * 60.0

THREADS_FILE_NAME = "session-threads.json"


def _default_data_dir() -> Path:
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data) / "ccapproval"
    return Path.home() / ".local" / "share" / "ccapproval"


class SlackConfig(BaseModel):
    bot_token: str | None = None
    app_token: str | None = None
    channel: str | None = None
    mention: str | None = None
    channel_label: str = "Slack"

    def missing(self) -> list[str]:
        names = {
            "bot_token": "SLACK_BOT_TOKEN",
            "app_token": "SLACK_APP_TOKEN",
            "channel": "SLACK_CHANNEL",
        }
        return [env for attr, env in names.items() if not getattr(self, attr)]


class SlackCredentials(BaseModel):
    """Validated Slack settings with every required value present."""

    model_config = ConfigDict(frozen=True)

    bot_token: str
    app_token: str
    channel: str
    mention: str | None = None
    channel_label: str = "Slack"


class PolicyConfig(BaseModel):
    # When true every tool is gated, otherwise only ``dangerous_tools``.
    gate_all_tools: bool = False
    dangerous_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_DANGEROUS_TOOLS))


class ApprovalConfig(BaseModel):
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    max_parameter_chars: int = Field(default=500, ge=16)


class StorageConfig(BaseModel):
    data_dir: Path = Field(default_factory=_default_data_dir)

    @property
    def threads_path(self) -> Path:
        return self.data_dir / THREADS_FILE_NAME


class ApiConfig(BaseModel):
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = Field(default=3031, ge=1, le=65535)


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    slack: SlackConfig = Field(default_factory=SlackConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    debug: bool = False

    @field_validator("slack", mode="after")
    @classmethod
    def _strip_channel(cls, value: SlackConfig) -> SlackConfig:
        if value.channel:
            value.channel = value.channel.strip().lstrip("#") or None
        return value

    def require_slack(self) -> SlackCredentials:
        """Return the Slack credentials, raising if any required value is missing."""
        missing = self.slack.missing()
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: " + ", ".join(missing)
            )
        return SlackCredentials.model_validate(self.slack.model_dump())

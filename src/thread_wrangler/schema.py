"""Pydantic schema for ~/.wrangler/wrangler.yaml

Default values here MUST match the canonical constants in conventions.py.
Every model is frozen: a configuration change installs a brand new
snapshot instead of editing the one a running command is reading.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WranglerConfig(BaseModel):
    """Policy flags that decide which moves are allowed."""

    model_config = ConfigDict(frozen=True)

    move_thread_from_private_channel_enable: bool = False
    move_thread_from_direct_message_channel_enable: bool = False
    move_thread_from_group_message_channel_enable: bool = False
    move_thread_to_another_team_enable: bool = False
    # Empty or "0" means unlimited
    move_thread_max_count: str = ""
    # Comma-separated email domains allowed to run commands; empty = everyone
    allowed_email_domain: str = ""
    # DM the root author when their thread is moved (not when silent)
    notify_thread_author_enable: bool = False

    @field_validator("move_thread_max_count", mode="before")
    @classmethod
    def _check_max_count(cls, value: object) -> str:
        if value is None:
            return ""
        text = str(value).strip()
        if not text:
            return ""
        try:
            count = int(text)
        except ValueError:
            raise ValueError(
                f"move_thread_max_count must be a whole number, got {text!r}"
            ) from None
        if count < 0:
            raise ValueError(
                f"move_thread_max_count must not be negative, got {count}"
            )
        return str(count)

    @property
    def max_thread_count(self) -> int:
        """Configured maximum thread length; 0 means unlimited."""
        if not self.move_thread_max_count:
            return 0
        return int(self.move_thread_max_count)

    @property
    def allowed_email_domains(self) -> list[str]:
        return [
            d.strip().lower().lstrip("@")
            for d in self.allowed_email_domain.split(",")
            if d.strip()
        ]


class HostConfig(BaseModel):
    """Where the chat server lives. The token is a secret (keys.yaml)."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    bot_user_id: str = ""


class ServerConfig(BaseModel):
    """Server settings including optional API key authentication.

    If api_key is set, PUT /api/config requires an
    Authorization: Bearer <key> header.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    simulator_mode: bool = False


class WranglerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    wrangler: WranglerConfig = Field(default_factory=WranglerConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

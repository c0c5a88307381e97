"""Runner settings and configuration.

This module provides Pydantic settings classes for runner configuration,
loaded from environment variables with support for nested configuration
(e.g. AGENT__URL, RUN__TIMEOUT_SECONDS, LOG__LEVEL).
"""

import logging
from pathlib import Path

import pydantic_settings
from pydantic import BaseModel, Field, field_validator

from agent_conversation_runner.platform.clients.agent.config import AgentClientConfig, AuthConfig


class AgentEndpointSettings(BaseModel):
    """Remote agent endpoint and credentials.

    Attributes:
        url: URL of the agent's streaming run endpoint
        bearer_token: Optional bearer token for authentication
        api_key: Optional API key for authentication
        api_key_header: Header carrying the API key
        request_timeout_seconds: Per-operation network timeout
        connect_timeout_seconds: Connection establishment timeout
    """

    url: str = Field("")
    bearer_token: str | None = None
    api_key: str | None = None
    api_key_header: str = Field("X-API-Key")
    request_timeout_seconds: float = Field(60.0, gt=0)
    connect_timeout_seconds: float = Field(10.0, gt=0)


class RunSettings(BaseModel):
    timeout_seconds: float = Field(600.0, gt=0)
    max_retries: int = Field(3, ge=0)
    retry_delay_seconds: float = Field(1.0, ge=0)
    retry_max_delay_seconds: float = Field(30.0, ge=0)
    strict_decoding: bool = Field(False)
    artifacts_dir: Path = Field(Path("runs"))


class LoggingSettings(BaseModel):
    level: str = Field("INFO")
    json_output: bool | None = Field(
        None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging._nameToLevel:
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class BugsnagSettings(BaseModel):
    api_key: str
    release_stage: str = Field("development")

    @field_validator("release_stage")
    @classmethod
    def _validate_bugsnag_release_stage(cls, v):
        if v not in ["development", "production", "local"]:
            raise ValueError(f'invalid bugsnag release stage "{v}"')
        return v


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_nested_delimiter="__")

    agent: AgentEndpointSettings = AgentEndpointSettings()
    run: RunSettings = RunSettings()
    log: LoggingSettings = LoggingSettings()

    # Error reporting is optional for local runs
    bugsnag: BugsnagSettings | None = None

    def client_config(self) -> AgentClientConfig:
        """Build the client configuration consumed by the session controller."""
        return AgentClientConfig(
            request_timeout_seconds=self.agent.request_timeout_seconds,
            connect_timeout_seconds=self.agent.connect_timeout_seconds,
            run_timeout_seconds=self.run.timeout_seconds,
            max_retries=self.run.max_retries,
            retry_delay_seconds=self.run.retry_delay_seconds,
            retry_max_delay_seconds=self.run.retry_max_delay_seconds,
            strict_decoding=self.run.strict_decoding,
        )

    def auth_config(self) -> AuthConfig:
        return AuthConfig(
            bearer_token=self.agent.bearer_token,
            api_key=self.agent.api_key,
            api_key_header=self.agent.api_key_header,
        )

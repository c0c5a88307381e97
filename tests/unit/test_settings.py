"""Unit tests for runner settings.

This module tests all Pydantic settings classes and their validators.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from agent_conversation_runner.platform.settings import (
    AgentEndpointSettings,
    BugsnagSettings,
    LoggingSettings,
    RunSettings,
    Settings,
)


class TestAgentEndpointSettings:
    """Tests for AgentEndpointSettings configuration."""

    def test_default_values(self):
        """Settings should have sensible defaults."""
        settings = AgentEndpointSettings()
        assert settings.url == ""
        assert settings.bearer_token is None
        assert settings.api_key_header == "X-API-Key"
        assert settings.request_timeout_seconds == 60.0

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            AgentEndpointSettings(connect_timeout_seconds=0)


class TestRunSettings:
    """Tests for RunSettings configuration."""

    def test_default_values(self):
        settings = RunSettings()
        assert settings.timeout_seconds == 600.0
        assert settings.max_retries == 3
        assert settings.strict_decoding is False
        assert settings.artifacts_dir == Path("runs")

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            RunSettings(max_retries=-1)


class TestLoggingSettings:
    """Tests for LoggingSettings configuration."""

    def test_log_level_validation_valid(self):
        """Valid log levels should be accepted."""
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "debug", "info"]:
            settings = LoggingSettings(level=level)
            assert settings.level == level.upper()

    def test_log_level_validation_invalid(self):
        """Invalid log levels should raise ValidationError."""
        with pytest.raises(ValidationError):
            LoggingSettings(level="INVALID")

    def test_json_output_default_none(self):
        """json_output defaults to None (auto)."""
        assert LoggingSettings().json_output is None


class TestBugsnagSettings:
    """Tests for BugsnagSettings configuration."""

    def test_valid_release_stages(self):
        """Valid release stages should be accepted."""
        for stage in ["development", "production", "local"]:
            settings = BugsnagSettings(api_key="test-key", release_stage=stage)
            assert settings.release_stage == stage

    def test_invalid_release_stage(self):
        """Invalid release stage should raise ValidationError."""
        with pytest.raises(ValidationError):
            BugsnagSettings(api_key="test-key", release_stage="staging")


class TestSettings:
    """Tests for the main Settings class."""

    def test_nested_environment_variables(self, monkeypatch):
        """Nested fields load from double-underscore variables."""
        monkeypatch.setenv("AGENT__URL", "https://agent.example.com/run")
        monkeypatch.setenv("AGENT__BEARER_TOKEN", "tok")
        monkeypatch.setenv("RUN__MAX_RETRIES", "5")
        monkeypatch.setenv("LOG__LEVEL", "debug")

        settings = Settings()

        assert settings.agent.url == "https://agent.example.com/run"
        assert settings.agent.bearer_token == "tok"
        assert settings.run.max_retries == 5
        assert settings.log.level == "DEBUG"

    def test_bugsnag_optional(self):
        assert Settings().bugsnag is None

    def test_client_config(self):
        settings = Settings(
            agent=AgentEndpointSettings(request_timeout_seconds=30, connect_timeout_seconds=5),
            run=RunSettings(timeout_seconds=120, max_retries=1, strict_decoding=True),
        )

        config = settings.client_config()

        assert config.request_timeout_seconds == 30
        assert config.connect_timeout_seconds == 5
        assert config.run_timeout_seconds == 120
        assert config.max_retries == 1
        assert config.strict_decoding is True

    def test_auth_config(self):
        settings = Settings(agent=AgentEndpointSettings(api_key="key", api_key_header="X-Key"))
        assert settings.auth_config().headers() == {"X-Key": "key"}

"""Configuration for the agent conversation client.

This module provides configuration dataclasses for the client, including
settings for timeouts, retry behavior and decoding strictness.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AgentClientConfig:
    """Configuration for a conversation run.

    Attributes:
        request_timeout_seconds: httpx read/write timeout per network operation (default: 60s).
        connect_timeout_seconds: httpx connect timeout (default: 10s).
        run_timeout_seconds: Default overall deadline for a run (default: 600s).
        max_retries: Retries for pre-stream connection failures (default: 3).
        retry_delay_seconds: Initial backoff delay, doubled per retry (default: 1.0s).
        retry_max_delay_seconds: Upper bound on a single backoff delay (default: 30s).
        strict_decoding: Promote malformed frames to a fatal error (default: False).
    """

    request_timeout_seconds: float = 60.0
    connect_timeout_seconds: float = 10.0
    run_timeout_seconds: float = 600.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    strict_decoding: bool = False


@dataclass(frozen=True)
class AuthConfig:
    """Authentication configuration for the agent endpoint.

    Supports API key and Bearer token authentication.

    Attributes:
        bearer_token: Bearer token sent in the Authorization header.
        api_key: API key for apiKey authentication.
        api_key_header: Header name for API key (default: X-API-Key).
    """

    bearer_token: str | None = None
    api_key: str | None = None
    api_key_header: str = "X-API-Key"

    @classmethod
    def from_credentials(cls, credentials: "str | AuthConfig | None") -> "AuthConfig":
        """Normalize opaque credentials into an AuthConfig.

        A plain string is treated as a bearer token.
        """
        if credentials is None:
            return cls()
        if isinstance(credentials, AuthConfig):
            return credentials
        return cls(bearer_token=credentials)

    def headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

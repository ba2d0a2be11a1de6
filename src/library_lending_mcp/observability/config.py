"""Configuration for Logfire observability."""

import os

from pydantic import BaseModel, Field


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability."""

    # Connection
    token: str = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN", ""))
    project_name: str = "library-lending-mcp"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Behavior
    enabled: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_ENABLED", "true").lower() == "true"
    )
    console_output: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_CONSOLE", "false").lower() == "true"
    )
    # Off unless a token is supplied or LOGFIRE_SEND=true
    send_to_logfire: bool = Field(
        default_factory=lambda: os.getenv(
            "LOGFIRE_SEND", "true" if os.getenv("LOGFIRE_TOKEN") else "false"
        ).lower()
        == "true"
    )


def get_environment_config() -> ObservabilityConfig:
    """Get configuration based on environment."""
    if os.getenv("ENVIRONMENT", "development") == "production":
        return ObservabilityConfig(console_output=False)
    return ObservabilityConfig()

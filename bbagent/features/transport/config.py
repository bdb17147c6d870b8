"""Configuration models for the HTTP transport layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bbagent.features.transport.constants import (
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)
from bbagent.features.transport.models import RetryPolicy


class TransportConfig(BaseModel):
    """Configuration for the HTTP transport.

    The base URL is validated when the client is constructed so that a
    missing or scheme-less URL surfaces as a ConfigurationError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    user_agent: Annotated[str, Field(max_length=500)] = DEFAULT_USER_AGENT
    timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_TIMEOUT_SECONDS
    )
    enable_cache: bool = False
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    debug: bool = Field(
        default=False,
        description="Echo request/response lines to stderr",
    )

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        """Trim surrounding whitespace from the username."""
        return v.strip()

    @field_validator("user_agent")
    @classmethod
    def default_user_agent(cls, v: str) -> str:
        """Fall back to the default user agent when blank."""
        return v or DEFAULT_USER_AGENT

    @property
    def has_credentials(self) -> bool:
        """Check whether Basic credentials should be sent."""
        return bool(self.username or self.password)

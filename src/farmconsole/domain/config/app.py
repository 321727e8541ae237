"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from farmconsole.domain.config.auth import AuthConfig
from farmconsole.domain.config.client import ClientConfig


class AppConfig(BaseModel):
    """Main application configuration.

    Root model aggregating all configuration sections. Validation happens at
    load time so a bad file fails before any request is made.

    Attributes:
        client: API client configuration
        auth: Session configuration
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "client": {
                    "base_url": "http://localhost:3000",
                    "max_retries": 3,
                    "retry_delay_ms": 1000,
                    "max_delay_ms": None,
                },
                "auth": {
                    "portal": "admin",
                    "token_file": None,
                    "token_ttl_days": 1,
                },
            }
        },
    )

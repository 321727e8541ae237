"""API client configuration model."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientConfig(BaseModel):
    """Configuration for the API client.

    Attributes:
        base_url: Backend API base address
        max_retries: Number of retries after the first attempt
        retry_delay_ms: Base backoff delay in milliseconds
        max_delay_ms: Optional ceiling for a single backoff delay (None = uncapped)
    """

    base_url: str = "http://localhost:3000"
    max_retries: int = Field(3, ge=0)
    retry_delay_ms: float = Field(1000, ge=0)
    max_delay_ms: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

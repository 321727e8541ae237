"""Authentication configuration model."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Portal(str, Enum):
    """Console portal the session belongs to"""

    ADMIN = "admin"
    STAFF = "staff"


class AuthConfig(BaseModel):
    """Configuration for session handling.

    Attributes:
        portal: Portal to authenticate against (admin or staff)
        token_file: Where the bearer token is persisted (None = per-portal default)
        token_ttl_days: Lifetime of a stored token in days
    """

    portal: Portal = Portal.ADMIN
    token_file: Optional[str] = None
    token_ttl_days: float = Field(1, gt=0)

    model_config = ConfigDict(use_enum_values=True, extra="forbid")

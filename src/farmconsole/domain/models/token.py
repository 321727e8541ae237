"""Auth token model"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AuthToken:
    """Bearer token plus its advisory expiry"""

    value: str
    expires_at: Optional[datetime] = None  # None = no expiry hint

    def __post_init__(self):
        if not self.value:
            raise ValueError("Token value must not be empty")

    @classmethod
    def issue(cls, value: str, ttl_days: Optional[float] = None) -> "AuthToken":
        """Create a token expiring ttl_days from now"""
        expires_at = None
        if ttl_days is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(days=ttl_days)
        return cls(value=value, expires_at=expires_at)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check the expiry hint (the server remains the authority)"""
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthToken":
        """Rebuild a token; a naive expiry timestamp is read as UTC"""
        expires_at = data.get("expires_at")
        if expires_at:
            expires_at = datetime.fromisoformat(expires_at)
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(value=data["value"], expires_at=expires_at or None)

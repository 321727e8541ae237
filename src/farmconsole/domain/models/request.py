"""Request descriptor - one logical call to the backend API"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class HttpMethod(str, Enum):
    """Methods accepted by the request executor"""

    GET = "GET"
    POST = "POST"
    PATCH = "PATCH"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class RequestDescriptor:
    """Describes a structured (JSON) API call"""

    method: HttpMethod
    endpoint: str  # Path relative to the client's base URL
    body: Optional[Any] = None  # JSON-serializable payload
    headers: Dict[str, str] = field(default_factory=dict)  # Overrides merged over defaults
    params: Dict[str, Any] = field(default_factory=dict)  # Query string

    def __post_init__(self):
        """Normalize method and validate the endpoint"""
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(self.method.upper()))
        if not self.endpoint.startswith("/"):
            raise ValueError(f"Endpoint must start with '/': {self.endpoint!r}")

    @property
    def query(self) -> Dict[str, str]:
        """Query parameters with empty values dropped"""
        return {key: str(value) for key, value in self.params.items() if value not in (None, "")}

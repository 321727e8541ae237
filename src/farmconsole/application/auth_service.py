"""Session management for the admin and staff portals"""

import logging
from typing import Any, Dict, Optional

from farmconsole.domain.config.auth import AuthConfig, Portal
from farmconsole.domain.errors import ParseError
from farmconsole.infrastructure.http_client import ApiClient
from farmconsole.infrastructure.token_store import TokenStore

logger = logging.getLogger(__name__)

ENDPOINTS = {
    Portal.ADMIN: {
        "login": "/admins/login",
        "introspect": "/admins/introspect",
        "profile": "/admins/profile",
    },
    Portal.STAFF: {
        "login": "/staff/login",
        "introspect": "/staff/profile",
        "profile": "/staff/profile",
    },
}


class AuthService:
    """Manages the session token for one portal.

    The token obtained at login goes into the same store the ``ApiClient``
    reads from, so every later call is authenticated automatically.
    """

    def __init__(self, client: ApiClient, token_store: TokenStore, config: Optional[AuthConfig] = None):
        self.client = client
        self.token_store = token_store
        self.config = config or AuthConfig()
        self.portal = Portal(self.config.portal)
        self.endpoints = ENDPOINTS[self.portal]

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in to the admin portal

        Staff sessions use ``staff_login`` instead.

        Args:
            email: Admin email
            password: Admin password

        Returns:
            Login response body

        Raises:
            ValueError: If the service is configured for the staff portal
            ApiError: If the server rejects the credentials
        """
        if self.portal != Portal.ADMIN:
            raise ValueError("Email login is only available on the admin portal; use staff_login")
        response = await self.client.post(self.endpoints["login"], {"email": email, "password": password})
        token = response.get("accessToken") if isinstance(response, dict) else None
        if token:
            self.token_store.set(token, self.config.token_ttl_days)
            logger.info(f"Logged in as {email}")
        else:
            logger.warning("Login response did not include an access token")
        return response

    async def staff_login(self, phone: str, pin: str) -> Dict[str, Any]:
        """Log in to the staff portal

        The staff API wraps its payload: ``{"success": ..., "data": {"accessToken", "staff"}}``.

        Returns:
            The ``data`` section of the response

        Raises:
            ParseError: If the response carries no token
            ApiError: If the server rejects the credentials
        """
        response = await self.client.post(ENDPOINTS[Portal.STAFF]["login"], {"phone": phone, "pin": pin})
        data = response.get("data") if isinstance(response, dict) else None
        if not isinstance(data, dict) or not data.get("accessToken"):
            raise ParseError("Invalid response format from server")
        self.token_store.set(data["accessToken"], self.config.token_ttl_days)
        logger.info(f"Staff logged in with phone {phone}")
        return data

    def logout(self) -> None:
        self.token_store.clear()
        logger.info("Logged out")

    def is_authenticated(self) -> bool:
        return self.token_store.get() is not None

    async def introspect(self) -> Dict[str, Any]:
        """Ask the server who the current token belongs to"""
        if self.portal == Portal.ADMIN:
            return await self.client.post(self.endpoints["introspect"])
        return await self.client.get(self.endpoints["introspect"])

    async def get_profile(self) -> Dict[str, Any]:
        return await self.client.get(self.endpoints["profile"])

    async def update_profile(self, **changes: Any) -> Dict[str, Any]:
        """Patch the current user's profile with the non-None fields given"""
        updates = {key: value for key, value in changes.items() if value is not None}
        return await self.client.patch(self.endpoints["profile"], updates)

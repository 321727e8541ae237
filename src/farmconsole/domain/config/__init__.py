"""Configuration models with Pydantic validation."""

from farmconsole.domain.config.app import AppConfig
from farmconsole.domain.config.auth import AuthConfig, Portal
from farmconsole.domain.config.client import ClientConfig

__all__ = [
    "AppConfig",
    "AuthConfig",
    "ClientConfig",
    "Portal",
]

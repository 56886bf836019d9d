"""
Delivery hook configuration.

Hooks are configured through ``FORKLINE_DELIVERY_HOOKS``, a JSON list of
objects, for example::

    FORKLINE_DELIVERY_HOOKS='[{"id": "router", "url": "http://router:8080/hook",
                              "enable": true, "auth_username": "admin",
                              "auth_secret": "s3cret", "headers": ["X-Tenant: acme"]}]'

This settings class lives on the fork side so the upstream ``Settings``
model never has to know about delivery hooks.
"""

import base64
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RESPONSE_SIZE = 52428800


def parse_header(entry: str) -> tuple[str, str]:
    """Split a ``Name: value`` header entry.

    Raises:
        ValueError: If the entry has no colon or an empty/invalid name.
    """
    name, sep, value = entry.partition(":")
    name = name.strip()
    if not sep or not name or any(ch.isspace() for ch in name):
        raise ValueError(f"Invalid header '{entry}', expected 'Name: value'")
    return name, value.strip()


class DeliveryHookConfig(BaseModel):
    """Configuration of one delivery hook endpoint."""

    id: str = Field(description="Hook identifier used in logs and verdicts")
    url: str = Field(description="Endpoint receiving the JSON request")
    enable: bool = Field(default=False, description="Hooks are disabled unless explicitly enabled")
    order: Optional[int] = Field(default=None, description="Dispatch order key; defaults to position * 10")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Request timeout in seconds")
    headers: List[str] = Field(default_factory=list, description="Extra 'Name: value' request headers")
    auth_username: Optional[str] = Field(default=None, description="HTTP Basic user name")
    auth_secret: Optional[str] = Field(default=None, description="HTTP Basic secret")
    allow_invalid_certs: bool = Field(default=False, description="Skip TLS certificate verification")
    tempfail_on_error: bool = Field(
        default=True, description="Temporarily reject when the hook errors or rejects"
    )
    max_response_size: int = Field(
        default=DEFAULT_MAX_RESPONSE_SIZE, gt=0, description="Largest accepted response body in bytes"
    )

    model_config = {"populate_by_name": True}

    @field_validator("headers")
    @classmethod
    def _validate_headers(cls, value: List[str]) -> List[str]:
        for entry in value:
            parse_header(entry)
        return value

    def request_headers(self) -> Dict[str, str]:
        """Headers sent with every request to this hook."""
        headers = dict(parse_header(entry) for entry in self.headers)
        headers["Content-Type"] = "application/json"
        if self.auth_username is not None and self.auth_secret is not None:
            token = base64.b64encode(f"{self.auth_username}:{self.auth_secret}".encode("utf-8")).decode("ascii")
            headers["Authorization"] = f"Basic {token}"
        return headers


class DeliveryHookSettings(BaseSettings):
    """Delivery hook settings bound from the environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    hooks: List[DeliveryHookConfig] = Field(
        default_factory=list,
        description="Configured delivery hooks (JSON list)",
        alias="FORKLINE_DELIVERY_HOOKS",
    )

    @field_validator("hooks")
    @classmethod
    def _unique_ids(cls, value: List[DeliveryHookConfig]) -> List[DeliveryHookConfig]:
        seen = set()
        for hook in value:
            if hook.id in seen:
                raise ValueError(f"Delivery hook id '{hook.id}' is configured twice")
            seen.add(hook.id)
        return value

    @property
    def enabled_hooks(self) -> List[DeliveryHookConfig]:
        return [hook for hook in self.hooks if hook.enable]

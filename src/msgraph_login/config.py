"""
Configuration for the Microsoft login strategy.

Settings come from the environment (AZURE_*, SESSION_*, ...); the app entry
point loads .env before importing this package. Per-request authorize options
are resolved by merging inbound request parameters over the strategy's
configured options over the compiled-in defaults.

Decisions:
- Only scope, prompt and lc can be supplied by the inbound request. Client
  credentials and endpoints are never taken from a query string.
- extra_scopes is appended to whatever scope string won, never replaces it.
- Client overrides for the OAuth client are all-or-nothing: if any of the six
  override keys is missing or None, all of them are dropped and only the
  redirect URI is passed on, so the client falls back to Settings entirely.
"""

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from msgraph_login.models import AuthRequestOptions

DEFAULT_SCOPE = "https://graph.microsoft.com/user.read openid email offline_access"
DEFAULT_UID_FIELD = "id"

DEFAULT_OPTIONS = {
    "default_scope": DEFAULT_SCOPE,
    "uid_field": DEFAULT_UID_FIELD,
}

# option name -> inbound request parameter that may override it
REQUEST_PARAMS = {
    "default_scope": "scope",
    "prompt": "prompt",
    "lc": "lc",
}

CLIENT_OVERRIDE_KEYS = (
    "tenant_id",
    "client_id",
    "client_secret",
    "authorize_url",
    "token_url",
    "request_opts",
)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration (Azure app registration + session policy)."""

    tenant_id: str = "common"
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    # Enables the app role assignment lookup when set.
    application_id: Optional[str] = None
    uid_field: str = DEFAULT_UID_FIELD
    session_secret: str = "change-me"
    role_refresh_interval_seconds: int = 0
    session_max_idle_seconds: int = 0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            tenant_id=os.getenv("AZURE_TENANT_ID") or "common",
            client_id=os.getenv("AZURE_CLIENT_ID"),
            client_secret=os.getenv("AZURE_CLIENT_SECRET"),
            application_id=os.getenv("AZURE_APPLICATION_ID") or None,
            uid_field=os.getenv("MS_UID_FIELD") or DEFAULT_UID_FIELD,
            session_secret=os.getenv("SESSION_SECRET", "change-me"),
            role_refresh_interval_seconds=_int_env("ROLE_REFRESH_INTERVAL_SECONDS", 0),
            session_max_idle_seconds=_int_env("SESSION_MAX_IDLE_SECONDS", 0),
        )


def option(key: str, options: Mapping[str, Any], defaults: Mapping[str, Any]) -> Any:
    """Configured value for key, falling back to the compiled-in default."""
    value = options.get(key)
    return value if value is not None else defaults.get(key)


def resolve(
    request_params: Mapping[str, Any],
    default_options: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> AuthRequestOptions:
    """Effective authorize options: request param > strategy override > default."""
    values = {}
    for key in (
        "default_scope",
        "extra_scopes",
        "prompt",
        "tenant_id",
        "client_id",
        "client_secret",
        "authorize_url",
        "token_url",
        "request_opts",
        "lc",
    ):
        param = REQUEST_PARAMS.get(key)
        value = request_params.get(param) if param else None
        values[key] = value if value else option(key, overrides, default_options)

    scope = values["default_scope"] or ""
    if values["extra_scopes"]:
        scope = f"{scope} {values['extra_scopes']}"

    return AuthRequestOptions(
        scopes=tuple(scope.split()),
        prompt=values["prompt"],
        tenant_id=values["tenant_id"],
        client_id=values["client_id"],
        client_secret=values["client_secret"],
        authorize_url=values["authorize_url"],
        token_url=values["token_url"],
        lc=values["lc"],
        request_opts=values["request_opts"],
        extra_params=dict(option("extra_params", overrides, default_options) or {}),
    )


def token_client_options(request_options: Mapping[str, Any], redirect_uri: str) -> dict:
    """Options handed to the OAuth client; overrides are kept only if all are set."""
    overrides = {key: request_options.get(key) for key in CLIENT_OVERRIDE_KEYS}
    if any(value is None for value in overrides.values()):
        return {"redirect_uri": redirect_uri}
    return {**overrides, "redirect_uri": redirect_uri}

"""
Records passed between the strategy, its collaborators and the host.

Everything here is immutable: the callback threads a fresh EnrichmentContext
through each enrichment step instead of mutating shared request state, and the
host reads the final CallbackState through the projections in normalize.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional, Tuple

from msgraph_login.errors import NormalizedError

# Keys lifted out of a raw token response; everything else lands in other_params.
_TOKEN_FIELDS = {"access_token", "refresh_token", "token_type", "expires_at", "expires_in"}


@dataclass(frozen=True)
class AuthRequestOptions:
    """Effective options for one authorization request."""

    scopes: Tuple[str, ...] = ()
    prompt: Optional[str] = None
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    authorize_url: Optional[str] = None
    token_url: Optional[str] = None
    lc: Optional[str] = None
    request_opts: Optional[Mapping[str, Any]] = None
    extra_params: Mapping[str, str] = field(default_factory=dict)

    @property
    def scope(self) -> str:
        """Scopes as sent on the wire."""
        return " ".join(self.scopes)

    def client_overrides(self) -> dict:
        """Resolved OAuth client overrides, keyed as token_client_options expects."""
        return {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "authorize_url": self.authorize_url,
            "token_url": self.token_url,
            "request_opts": self.request_opts,
        }


@dataclass(frozen=True)
class TokenResult:
    access_token: Optional[str]
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[int] = None
    other_params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, token: Mapping[str, Any]) -> "TokenResult":
        """Build from a decoded token endpoint response."""
        expires_at = token.get("expires_at")
        if expires_at is None and token.get("expires_in") is not None:
            expires_at = int(time.time()) + int(token["expires_in"])
        return cls(
            access_token=token.get("access_token"),
            refresh_token=token.get("refresh_token"),
            token_type=token.get("token_type") or "Bearer",
            expires_at=int(expires_at) if expires_at is not None else None,
            other_params={k: v for k, v in token.items() if k not in _TOKEN_FIELDS},
        )


@dataclass(frozen=True)
class GraphResponse:
    """A Graph response; body is decoded JSON or raw bytes depending on content type."""

    status_code: int
    body: Any = None


@dataclass(frozen=True)
class EnrichmentContext:
    user: Optional[Mapping[str, Any]] = None
    roles: Optional[Any] = None
    photo: Optional[bytes] = None
    photo_metadata: Optional[Mapping[str, Any]] = None

    def put(self, slot: str, value: Any) -> "EnrichmentContext":
        """Return a copy with one slot set."""
        return replace(self, **{slot: value})


@dataclass(frozen=True)
class CallbackState:
    """Outcome of one callback: the token, the enrichment data and any errors."""

    token: Optional[TokenResult] = None
    enrichment: EnrichmentContext = field(default_factory=EnrichmentContext)
    errors: Tuple[NormalizedError, ...] = ()


@dataclass(frozen=True)
class Credentials:
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires: bool = False
    expires_at: Optional[int] = None
    scopes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProfileInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass(frozen=True)
class RawExtra:
    token: Optional[TokenResult] = None
    user: Optional[Mapping[str, Any]] = None
    roles: Optional[Any] = None
    photo: Optional[bytes] = None
    photo_metadata: Optional[Mapping[str, Any]] = None

"""
Provider-agnostic views of a finished callback.

Pure projections over CallbackState: they never mutate it, so calling them
repeatedly gives equal results.
"""

from typing import Optional

from msgraph_login.config import DEFAULT_UID_FIELD
from msgraph_login.models import CallbackState, Credentials, ProfileInfo, RawExtra


def uid(state: CallbackState, uid_field: str = DEFAULT_UID_FIELD) -> Optional[str]:
    """Value of uid_field in the Graph user; None when absent."""
    user = state.enrichment.user or {}
    return user.get(str(uid_field))


def credentials(state: CallbackState) -> Credentials:
    token = state.token
    if token is None:
        return Credentials()
    # Granted scopes, which may differ from the requested ones.
    scopes = (token.other_params.get("scope") or "").split(" ")
    return Credentials(
        token=token.access_token,
        refresh_token=token.refresh_token,
        token_type=token.token_type,
        expires=token.expires_at is not None,
        expires_at=token.expires_at,
        scopes=[scope for scope in scopes if scope],
    )


def info(state: CallbackState) -> ProfileInfo:
    user = state.enrichment.user or {}
    return ProfileInfo(
        name=user.get("displayName"),
        email=user.get("mail") or user.get("userPrincipalName"),
        first_name=user.get("givenName"),
        last_name=user.get("surname"),
    )


def extra(state: CallbackState) -> RawExtra:
    context = state.enrichment
    return RawExtra(
        token=state.token,
        user=context.user,
        roles=context.roles,
        photo=context.photo,
        photo_metadata=context.photo_metadata,
    )

"""
Microsoft Entra (Azure AD) login strategy with Microsoft Graph enrichment.

Exposes the strategy (MicrosoftStrategy) and its OAuth/Graph client
(MicrosoftOAuth), the records it produces, the normalized error taxonomy, the
FastAPI auth router factory (create_auth_router) and session role helpers.
"""

from .authz_config import assigned_app_role_ids, compute_roles
from .config import DEFAULT_SCOPE, Settings
from .errors import ErrorKind, NormalizedError, OAuth2Error
from .microsoft import MicrosoftStrategy
from .models import CallbackState, Credentials, EnrichmentContext, ProfileInfo, RawExtra, TokenResult
from .oauth import MicrosoftOAuth
from .router import create_auth_router
from .session import (
    get_roles,
    is_session_stale,
    require_any_role,
    require_role,
    require_roles,
    touch_session_activity,
)

__all__ = [
    "MicrosoftStrategy",
    "MicrosoftOAuth",
    "Settings",
    "DEFAULT_SCOPE",
    "ErrorKind",
    "NormalizedError",
    "OAuth2Error",
    "CallbackState",
    "Credentials",
    "EnrichmentContext",
    "ProfileInfo",
    "RawExtra",
    "TokenResult",
    "get_roles",
    "is_session_stale",
    "require_roles",
    "require_role",
    "require_any_role",
    "touch_session_activity",
    "assigned_app_role_ids",
    "compute_roles",
    "create_auth_router",
]

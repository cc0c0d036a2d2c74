"""
Microsoft Graph enrichment of a freshly issued token.

Four steps run strictly in order: user profile, app role assignments, profile
photo bytes, profile photo metadata. Each step takes the current
EnrichmentContext and returns either a new context or a NormalizedError; the
first error stops the pipeline and the remaining slots stay empty.

Decisions:
- Role assignments are only fetched when an application id is configured; the
  lookup is scoped to that application (resourceId filter) and keyed by the
  fetched user's id.
- The photo steps share one fetcher with the profile step and stay sequential.
"""

import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

from msgraph_login.errors import (
    ErrorKind,
    NormalizedError,
    OAuth2Error,
    classify_failure,
    is_benign_absence,
    transport_error,
    unauthorized,
)
from msgraph_login.models import EnrichmentContext, TokenResult
from msgraph_login.protocol import GraphFetcher

logger = logging.getLogger(__name__)

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
USER_URL = f"{GRAPH_BASE}/me/"
ROLES_URL = GRAPH_BASE + "/users/{user_id}/appRoleAssignments?$filter=resourceId%20eq%20{application_id}"
PHOTO_URL = f"{GRAPH_BASE}/me/photo/$value"
PHOTO_METADATA_URL = f"{GRAPH_BASE}/me/photo/"

# Slots filled from JSON endpoints and the body shapes they accept.
_JSON_SLOTS = {
    "user": Mapping,
    "roles": (Mapping, list),
    "photo_metadata": Mapping,
}

StepResult = Union[EnrichmentContext, NormalizedError]
Step = Callable[[EnrichmentContext, TokenResult], Awaitable[StepResult]]


def roles_url(user_id: Any, application_id: str) -> str:
    return ROLES_URL.format(user_id=user_id, application_id=application_id)


async def fetch_into(
    fetcher: GraphFetcher,
    token: TokenResult,
    context: EnrichmentContext,
    url: str,
    slot: str,
) -> StepResult:
    """
    GET url and store the decoded body in slot.

    401 is an expired/invalid token, a 2xx of the expected shape is stored
    (JSON slots reject anything else), ImageNotFound stores
    None, a Graph error body becomes an api_error and anything else is a
    transport error.
    """
    try:
        response = await fetcher.get(token, url)
    except OAuth2Error as e:
        return transport_error(e.reason)

    if response.status_code == 401:
        return unauthorized()
    if 200 <= response.status_code <= 299:
        expected = _JSON_SLOTS.get(slot)
        if expected and not isinstance(response.body, expected):
            return transport_error(f"unexpected response body for {slot}")
        return context.put(slot, response.body)
    if is_benign_absence(response.body):
        logger.info(f"No {slot} set for user (ImageNotFound)")
        return context.put(slot, None)
    return classify_failure(response.body, f"unexpected status code {response.status_code}")


class EnrichmentPipeline:
    """The ordered Graph lookups run after a successful token exchange."""

    def __init__(self, fetcher: GraphFetcher, application_id: Optional[str] = None):
        self.fetcher = fetcher
        self.application_id = application_id

    @property
    def steps(self) -> List[Step]:
        return [
            self.fetch_user,
            self.fetch_roles,
            self.fetch_profile_photo,
            self.fetch_profile_photo_metadata,
        ]

    async def fetch_user(self, context: EnrichmentContext, token: TokenResult) -> StepResult:
        return await fetch_into(self.fetcher, token, context, USER_URL, "user")

    async def fetch_roles(self, context: EnrichmentContext, token: TokenResult) -> StepResult:
        if not self.application_id:
            return context
        user_id = (context.user or {}).get("id")
        if not user_id:
            return NormalizedError(ErrorKind.API_ERROR, "invalid_user", "user profile has no id")
        return await fetch_into(
            self.fetcher, token, context, roles_url(user_id, self.application_id), "roles"
        )

    async def fetch_profile_photo(self, context: EnrichmentContext, token: TokenResult) -> StepResult:
        return await fetch_into(self.fetcher, token, context, PHOTO_URL, "photo")

    async def fetch_profile_photo_metadata(
        self, context: EnrichmentContext, token: TokenResult
    ) -> StepResult:
        return await fetch_into(self.fetcher, token, context, PHOTO_METADATA_URL, "photo_metadata")

    async def run(
        self, token: TokenResult, context: Optional[EnrichmentContext] = None
    ) -> Tuple[EnrichmentContext, Optional[NormalizedError]]:
        """Run every step in order; stop at the first error and return it with the context so far."""
        context = context or EnrichmentContext()
        for step in self.steps:
            result = await step(context, token)
            if isinstance(result, NormalizedError):
                logger.warning(f"Enrichment step {step.__name__} failed: {result.code} {result.message}")
                return context, result
            context = result
        return context, None

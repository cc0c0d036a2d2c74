"""
Microsoft Entra (Azure AD) login strategy.

Builds the authorize redirect, exchanges the callback code for a token and
enriches the identity from Microsoft Graph (user, app role assignments, profile
photo). Failures never raise out of handle_callback: they are returned as
NormalizedErrors in the CallbackState, and the first one stops the flow.
"""

import logging
from typing import Any, List, Mapping, Optional, Union

from msgraph_login import normalize
from msgraph_login.authorize import build_params
from msgraph_login.config import DEFAULT_OPTIONS, Settings, resolve, token_client_options
from msgraph_login.enrichment import EnrichmentPipeline
from msgraph_login.errors import (
    NormalizedError,
    OAuth2Error,
    missing_code,
    provider_rejected,
    transport_error,
)
from msgraph_login.models import (
    CallbackState,
    Credentials,
    EnrichmentContext,
    ProfileInfo,
    RawExtra,
    TokenResult,
)
from msgraph_login.oauth import MicrosoftOAuth
from msgraph_login.protocol import OAuthProvider

logger = logging.getLogger(__name__)


class MicrosoftStrategy(OAuthProvider):
    """Authorization-code login against Microsoft Entra with Graph profile enrichment."""

    name: str = "microsoft"

    def __init__(
        self,
        oauth: MicrosoftOAuth,
        settings: Settings,
        options: Optional[Mapping[str, Any]] = None,
    ):
        """
        oauth is both the OAuth client and the Graph fetcher; options are the
        strategy's configured overrides (default_scope, prompt, client ids...).
        """
        self.oauth = oauth
        self.settings = settings
        self.options = dict(options or {})
        self.default_options = {**DEFAULT_OPTIONS, "uid_field": settings.uid_field}
        self.pipeline = EnrichmentPipeline(oauth, application_id=settings.application_id)

    def _options(self, options: Optional[Mapping[str, Any]]) -> dict:
        return {**self.options, **(options or {})}

    def handle_request(
        self,
        params: Mapping[str, Any],
        callback_url: str,
        state: Optional[str],
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Return the Microsoft authorize URL for this login attempt."""
        request_options = resolve(params, self.default_options, self._options(options))
        return self.oauth.authorize_url(
            build_params(request_options, state),
            token_client_options(request_options.client_overrides(), callback_url),
        )

    async def exchange(
        self, code: str, client_options: Mapping[str, Any]
    ) -> Union[TokenResult, NormalizedError]:
        """Exchange the code; a missing access token or a transport failure becomes an error."""
        try:
            token = await self.oauth.get_token(code, client_options)
        except OAuth2Error as e:
            return transport_error(e.reason)
        if token.access_token is None:
            return provider_rejected(token)
        return token

    async def handle_callback(
        self,
        params: Mapping[str, Any],
        callback_url: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CallbackState:
        code = params.get("code")
        if not code:
            return self._fail(CallbackState(), missing_code())

        request_options = resolve(params, self.default_options, self._options(options))
        client_options = token_client_options(request_options.client_overrides(), callback_url)
        token = await self.exchange(code, client_options)
        if isinstance(token, NormalizedError):
            return self._fail(CallbackState(), token)

        context, error = await self.pipeline.run(token)
        state = CallbackState(token=token, enrichment=context)
        if error is not None:
            return self._fail(state, error)
        logger.info(f"Microsoft login succeeded for uid={self.uid(state)}")
        return state

    @staticmethod
    def _fail(state: CallbackState, error: NormalizedError) -> CallbackState:
        logger.warning(f"Microsoft login failed | kind={error.kind.value} code={error.code}")
        return CallbackState(
            token=state.token, enrichment=state.enrichment, errors=state.errors + (error,)
        )

    def uid(self, state: CallbackState) -> Optional[str]:
        return normalize.uid(state, self.options.get("uid_field") or self.default_options["uid_field"])

    def credentials(self, state: CallbackState) -> Credentials:
        return normalize.credentials(state)

    def info(self, state: CallbackState) -> ProfileInfo:
        return normalize.info(state)

    def extra(self, state: CallbackState) -> RawExtra:
        return normalize.extra(state)

    def errors(self, state: CallbackState) -> List[NormalizedError]:
        return list(state.errors)

    def cleanup(self, state: CallbackState) -> CallbackState:
        """Drop the token and all Graph data; errors are kept for the host."""
        return CallbackState(token=None, enrichment=EnrichmentContext(), errors=state.errors)

"""
Protocols at the edges of the login strategy.

OAuthProvider is what the auth router talks to. OAuthClient and GraphFetcher
are the collaborators the strategy consumes: the OAuth2 protocol client
(authorize URL + code exchange) and an authenticated Graph GET. The
MicrosoftOAuth client in oauth.py implements both; tests substitute fakes.
"""

from typing import Any, List, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

from msgraph_login.errors import NormalizedError
from msgraph_login.models import (
    CallbackState,
    Credentials,
    GraphResponse,
    ProfileInfo,
    RawExtra,
    TokenResult,
)


@runtime_checkable
class OAuthClient(Protocol):
    """OAuth2 authorization-code client for the identity provider."""

    def authorize_url(self, params: Sequence[Tuple[str, str]], client_options: Mapping[str, Any]) -> str:
        """Build the IdP authorize URL from ordered params and client options."""
        ...

    async def get_token(self, code: str, client_options: Mapping[str, Any]) -> TokenResult:
        """Exchange a code for a token. Raises OAuth2Error on transport failure."""
        ...


@runtime_checkable
class GraphFetcher(Protocol):
    async def get(self, token: TokenResult, url: str) -> GraphResponse:
        """Authenticated GET. Raises OAuth2Error on transport failure."""
        ...


@runtime_checkable
class OAuthProvider(Protocol):
    """Protocol for a login strategy (e.g. Microsoft) as seen by the auth router."""

    name: str

    def handle_request(
        self,
        params: Mapping[str, Any],
        callback_url: str,
        state: Optional[str],
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Return the URL to redirect the user to for login."""
        ...

    async def handle_callback(
        self,
        params: Mapping[str, Any],
        callback_url: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CallbackState:
        """Exchange the code and gather profile data; errors are carried in the state."""
        ...

    def uid(self, state: CallbackState) -> Optional[str]: ...

    def credentials(self, state: CallbackState) -> Credentials: ...

    def info(self, state: CallbackState) -> ProfileInfo: ...

    def extra(self, state: CallbackState) -> RawExtra: ...

    def errors(self, state: CallbackState) -> List[NormalizedError]: ...

    def cleanup(self, state: CallbackState) -> CallbackState: ...

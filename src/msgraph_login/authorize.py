"""Parameters for the outbound authorize redirect."""

from typing import List, Optional, Tuple

from msgraph_login.models import AuthRequestOptions


def build_params(options: AuthRequestOptions, state: Optional[str]) -> List[Tuple[str, str]]:
    """
    Ordered authorize parameters: scope, prompt, state, lc, then any
    provider-specific extras. Unset values are left out.
    """
    params = [
        ("scope", options.scope),
        ("prompt", options.prompt),
        ("state", state),
        ("lc", options.lc),
    ]
    params.extend(options.extra_params.items())
    return [(key, value) for key, value in params if value]

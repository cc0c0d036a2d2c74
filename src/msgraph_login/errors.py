"""
Error taxonomy for the Microsoft login callback.

Every upstream failure (token endpoint, Graph) is reduced to a NormalizedError
with one of five kinds. Collaborators signal transport problems by raising
OAuth2Error; nothing else is expected to escape them.

Decisions:
- Graph answers "no photo set" with {"error": {"code": "ImageNotFound"}}. That
  is a successful empty result, so is_benign_absence() is checked before
  classify_failure() and never produces an error.
- A failed Graph response without a structured error body is reported as a
  transport error naming the status code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

TRANSPORT_ERROR_CODE = "OAuth2"
IMAGE_NOT_FOUND = "ImageNotFound"


class ErrorKind(str, Enum):
    MISSING_CODE = "missing_code"
    PROVIDER_REJECTED = "provider_rejected"
    UNAUTHORIZED = "unauthorized"
    API_ERROR = "api_error"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class NormalizedError:
    kind: ErrorKind
    code: str
    message: str

    def to_dict(self) -> dict:
        """JSON-friendly form for responses and logs."""
        return {"kind": self.kind.value, "code": self.code, "message": self.message}


class OAuth2Error(Exception):
    """Raised by the OAuth/Graph collaborators when a request fails below the HTTP layer."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def missing_code() -> NormalizedError:
    return NormalizedError(ErrorKind.MISSING_CODE, "missing_code", "No code received")


def provider_rejected(token) -> NormalizedError:
    """The token endpoint answered without an access token."""
    params = token.other_params
    return NormalizedError(
        ErrorKind.PROVIDER_REJECTED, params.get("error"), params.get("error_description")
    )


def unauthorized() -> NormalizedError:
    return NormalizedError(ErrorKind.UNAUTHORIZED, "token", "unauthorized")


def transport_error(reason: Any) -> NormalizedError:
    return NormalizedError(ErrorKind.TRANSPORT_ERROR, TRANSPORT_ERROR_CODE, str(reason))


def _error_object(body: Any) -> dict:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return {}


def is_benign_absence(body: Any) -> bool:
    """True for the Graph "no profile photo" answer."""
    return _error_object(body).get("code") == IMAGE_NOT_FOUND


def classify_failure(body: Any, reason: Any) -> NormalizedError:
    """
    Map a failed Graph response to an error.

    A body shaped like {"error": {"code": C, "message": M}} becomes an api_error
    carrying C and M verbatim; anything else is a transport error with reason.
    """
    error = _error_object(body)
    if "code" in error and "message" in error:
        return NormalizedError(ErrorKind.API_ERROR, error["code"], error["message"])
    return transport_error(reason)

"""
Errors raised by the storefront client.
"""
from typing import Optional

import httpx


class ApiError(Exception):
    """A non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, response: Optional[httpx.Response] = None):
        self.status_code = status_code
        self.message = message
        self.response = response
        super().__init__(f"{status_code}: {message}")

    @property
    def code(self) -> Optional[str]:
        """Machine-readable reason from the error body, if any."""
        if self.response is None:
            return None
        try:
            return self.response.json().get("error")
        except ValueError:
            return None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = str(body["message"])
        else:
            message = response.reason_phrase or "An error occurred"
        return cls(response.status_code, message, response)


class SessionExpiredError(ApiError):
    """The access token could not be refreshed; the user is signed out."""


class PasswordMismatchError(ValueError):
    """Signup password and its confirmation differ."""

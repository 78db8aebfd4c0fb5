"""Schemas related to the OAuth callback flow."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CallbackParams(BaseModel):
    """Query parameters the identity provider appends to the callback redirect."""

    code: Optional[str] = Field(None, description="One-time authorization code.")
    next: Optional[str] = Field(None, description="Destination path after sign-in.")
    error: Optional[str] = Field(None, description="Provider error code.")
    error_description: Optional[str] = Field(
        None, description="Human readable provider error text."
    )


class CallbackOutcome(str, Enum):
    """Terminal states of a callback reconciliation."""

    PROVIDER_ERROR = "provider_error"
    NO_CODE = "no_code"
    SUCCEEDED = "succeeded"
    ALREADY_CONSUMED = "already_consumed"
    EXCHANGE_FAILED = "exchange_failed"
    TIMED_OUT = "timeout"
    UNEXPECTED = "unexpected"

    @property
    def is_success(self) -> bool:
        return self in {
            CallbackOutcome.NO_CODE,
            CallbackOutcome.SUCCEEDED,
            CallbackOutcome.ALREADY_CONSUMED,
        }


class AuthSession(BaseModel):
    """Access/refresh token pair returned by a successful code exchange."""

    access_token: str
    refresh_token: str
    expires_in: int = 3600
    user_id: Optional[str] = None
    email: Optional[str] = None


class CallbackResponse(BaseModel):
    """JSON answer for the client-side callback path."""

    outcome: CallbackOutcome
    location: str
    session_id: Optional[str] = None


class AuthErrorPage(BaseModel):
    """Content of the authentication error page."""

    error: str
    error_description: str
    retry_path: str = "/login"
    continue_path: str = "/home"


__all__ = [
    "AuthErrorPage",
    "AuthSession",
    "CallbackOutcome",
    "CallbackParams",
    "CallbackResponse",
]

"""
Supabase Auth utilities.

These helpers build the provider sign-in URL for the PKCE flow and exchange
the returned authorization code for a session.
"""

from __future__ import annotations

import base64
import hmac
import json
import secrets
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from fastapi import HTTPException, status

from fittrack.core.config import SupabaseSettings
from fittrack.schemas.auth import AuthSession


class VerifierStateEncoder:
    """Sign and verify the PKCE verifier cookie so it cannot be forged."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed PKCE verifier state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid PKCE verifier signature.",
            )
        return json.loads(serialized)


def generate_code_verifier() -> str:
    """Return a random PKCE verifier (43+ URL-safe characters)."""
    return secrets.token_urlsafe(48)


def code_challenge_for(verifier: str) -> str:
    """Derive the S256 challenge for ``verifier``."""
    digest = sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class SessionExchangeError(Exception):
    """Raised when Supabase declines to exchange an authorization code."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SupabaseAuthClient:
    """Build provider authorization URLs and exchange PKCE authorization codes."""

    SUPPORTED_PROVIDERS = ("google", "apple")

    def __init__(
        self,
        settings: SupabaseSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._settings.anon_key,
            "Authorization": f"Bearer {self._settings.anon_key}",
        }

    def build_authorization_url(
        self, *, provider: str, redirect_to: str, code_challenge: str
    ) -> str:
        """Construct the Supabase authorize URL for an external provider."""
        if provider not in self.SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported identity provider: {provider}")
        params = {
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": code_challenge,
            "code_challenge_method": "s256",
        }
        return f"{self._settings.auth_base_url}/authorize?{urlencode(params)}"

    async def exchange_code_for_session(
        self, code: str, code_verifier: Optional[str] = None
    ) -> AuthSession:
        """
        Exchange an authorization code for a session.

        Raises ``SessionExchangeError`` carrying the provider's message when the
        code is rejected (already used, expired, bad verifier, ...). Transport
        failures propagate as ``httpx`` errors.
        """
        payload: Dict[str, Any] = {"auth_code": code}
        if code_verifier:
            payload["code_verifier"] = code_verifier

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(
                f"{self._settings.auth_base_url}/token",
                params={"grant_type": "pkce"},
                json=payload,
                headers=self._headers(),
            )

        if response.status_code != status.HTTP_200_OK:
            raise SessionExchangeError(
                _error_message(response), status_code=response.status_code
            )

        body = response.json()
        access_token = body.get("access_token")
        refresh_token = body.get("refresh_token")
        if not access_token or not refresh_token:
            raise SessionExchangeError("Incomplete session payload returned from Supabase.")

        user = body.get("user") or {}
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(body.get("expires_in") or 3600),
            user_id=user.get("id"),
            email=user.get("email"),
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = body.get(key)
            if value:
                return str(value)
    return response.text


__all__ = [
    "SessionExchangeError",
    "SupabaseAuthClient",
    "VerifierStateEncoder",
    "code_challenge_for",
    "generate_code_verifier",
]

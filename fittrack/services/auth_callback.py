"""
Resolve an identity-provider redirect into a single navigation.

Both callback entry points (the eager server redirect and the deferred
client request) call ``AuthCallbackReconciler.reconcile`` with their own
``navigate`` capability. A reconciler instance runs at most once; the
navigation it emits is final.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol
from urllib.parse import quote

from fittrack.clients.supabase_auth import SessionExchangeError
from fittrack.core.config import AuthCallbackSettings
from fittrack.schemas.auth import AuthSession, CallbackOutcome, CallbackParams
from fittrack.services.exchange_ledger import ClaimStatus, ExchangeLedger

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]

PROVIDER_ERROR_DESCRIPTION = "Authentication error"
EXCHANGE_ERROR_DESCRIPTION = "Failed to authenticate"
TIMEOUT_DESCRIPTION = "Authentication took too long. Please try again."
UNEXPECTED_DESCRIPTION = "Unexpected error during authentication"

# Characters encodeURIComponent leaves alone besides the ones quote() always keeps.
_URI_COMPONENT_SAFE = "!*'()"

# Exchanges that outlive their deadline keep running; hold references so the
# event loop does not drop them before they settle.
_late_exchanges: set[asyncio.Task] = set()


class CodeExchanger(Protocol):
    async def exchange_code_for_session(
        self, code: str, code_verifier: Optional[str] = None
    ) -> AuthSession: ...


@dataclass(slots=True)
class CallbackResult:
    outcome: CallbackOutcome
    location: str
    session: Optional[AuthSession] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


@dataclass(slots=True)
class _Settlement:
    outcome: CallbackOutcome
    session: Optional[AuthSession] = None
    message: Optional[str] = None


def build_error_location(error_page_path: str, error: str, description: str) -> str:
    """Build ``<page>?error=..&error_description=..`` with URI-component escaping."""
    query = "error={}&error_description={}".format(
        quote(error, safe=_URI_COMPONENT_SAFE),
        quote(description, safe=_URI_COMPONENT_SAFE),
    )
    return f"{error_page_path}?{query}"


def safe_next(next_path: Optional[str], default: str) -> str:
    """Accept only same-origin absolute paths as the post-login destination."""
    if not next_path or not next_path.startswith("/"):
        return default
    if next_path.startswith("//") or "\\" in next_path:
        return default
    return next_path


def is_already_consumed(message: str, markers: tuple[str, ...]) -> bool:
    return any(marker in message for marker in markers)


class AuthCallbackReconciler:
    """One-shot reconciliation of a single callback redirect."""

    def __init__(
        self,
        exchanger: CodeExchanger,
        settings: AuthCallbackSettings,
        *,
        ledger: Optional[ExchangeLedger] = None,
        code_verifier: Optional[str] = None,
    ) -> None:
        self._exchanger = exchanger
        self._settings = settings
        self._ledger = ledger
        self._code_verifier = code_verifier
        self._started = False
        self._exchange_started = False
        self._exchange_calls = 0
        self._result: Optional[CallbackResult] = None

    @property
    def exchange_calls(self) -> int:
        return self._exchange_calls

    @property
    def result(self) -> Optional[CallbackResult]:
        return self._result

    async def reconcile(
        self, params: CallbackParams, navigate: Navigate
    ) -> Optional[CallbackResult]:
        """
        Drive the redirect to a terminal outcome and navigate exactly once.

        A repeated call on the same instance does nothing and returns the
        first call's result (``None`` while that call is still running).
        """
        if self._started:
            logger.debug("Callback already reconciled on this path; ignoring")
            return self._result
        self._started = True

        next_path = safe_next(params.next, self._settings.default_next)

        if params.error:
            logger.error(
                "OAuth provider returned an error: %s (%s)",
                params.error,
                params.error_description,
            )
            return self._finish(
                navigate,
                CallbackOutcome.PROVIDER_ERROR,
                error=params.error,
                description=params.error_description or PROVIDER_ERROR_DESCRIPTION,
            )

        if not params.code:
            # A reload of the callback URL; an existing session carries on.
            return self._finish(navigate, CallbackOutcome.NO_CODE, location=next_path)

        task = asyncio.ensure_future(self._settle(params.code))
        done, _ = await asyncio.wait(
            {task}, timeout=self._settings.exchange_timeout_seconds
        )

        if not done:
            logger.error(
                "Auth callback timed out after %ss", self._settings.exchange_timeout_seconds
            )
            if self._exchange_started:
                _late_exchanges.add(task)
                task.add_done_callback(_discard_late_settlement)
            else:
                task.cancel()
            return self._finish(
                navigate,
                CallbackOutcome.TIMED_OUT,
                error="timeout",
                description=TIMEOUT_DESCRIPTION,
            )

        try:
            settlement = task.result()
        except Exception:
            logger.exception("Unexpected error in auth callback")
            return self._finish(
                navigate,
                CallbackOutcome.UNEXPECTED,
                error="unexpected",
                description=UNEXPECTED_DESCRIPTION,
            )

        if settlement.outcome is CallbackOutcome.EXCHANGE_FAILED:
            return self._finish(
                navigate,
                CallbackOutcome.EXCHANGE_FAILED,
                error="exchange_error",
                description=settlement.message or EXCHANGE_ERROR_DESCRIPTION,
            )
        return self._finish(
            navigate, settlement.outcome, location=next_path, session=settlement.session
        )

    async def _settle(self, code: str) -> _Settlement:
        if self._ledger is None:
            return await self._exchange(code)

        while not self._ledger.claim(code):
            claim = self._ledger.get(code)
            if claim is None:
                # Released or expired between our claim attempt and the read.
                continue
            if claim.status is ClaimStatus.CONSUMED:
                logger.info("Authorization code already exchanged by another path")
                return _Settlement(CallbackOutcome.ALREADY_CONSUMED)
            if claim.status is ClaimStatus.FAILED:
                return _Settlement(CallbackOutcome.EXCHANGE_FAILED, message=claim.message)
            await asyncio.sleep(self._settings.claim_poll_interval_seconds)

        try:
            settlement = await self._exchange(code)
        except Exception:
            self._ledger.release(code)
            raise
        if settlement.outcome is CallbackOutcome.EXCHANGE_FAILED:
            self._ledger.mark_failed(code, settlement.message or EXCHANGE_ERROR_DESCRIPTION)
        else:
            self._ledger.mark_consumed(code)
        return settlement

    async def _exchange(self, code: str) -> _Settlement:
        self._exchange_started = True
        self._exchange_calls += 1
        try:
            session = await self._exchanger.exchange_code_for_session(
                code, self._code_verifier
            )
        except SessionExchangeError as exc:
            if is_already_consumed(exc.message, self._settings.consumed_markers):
                logger.info("Code already used or expired, continuing to destination")
                return _Settlement(CallbackOutcome.ALREADY_CONSUMED)
            logger.error("Error exchanging code: %s", exc.message)
            return _Settlement(CallbackOutcome.EXCHANGE_FAILED, message=exc.message)
        return _Settlement(CallbackOutcome.SUCCEEDED, session=session)

    def _finish(
        self,
        navigate: Navigate,
        outcome: CallbackOutcome,
        *,
        location: Optional[str] = None,
        session: Optional[AuthSession] = None,
        error: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CallbackResult:
        if location is None:
            location = build_error_location(
                self._settings.error_page_path, error or "unknown_error", description or ""
            )
        self._result = CallbackResult(
            outcome=outcome,
            location=location,
            session=session,
            error=error,
            error_description=description,
        )
        navigate(location)
        return self._result


def _discard_late_settlement(task: asyncio.Task) -> None:
    _late_exchanges.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Late auth exchange failed after timeout: %s", exc)
        return
    logger.info(
        "Discarding late auth exchange result after timeout: %s", task.result().outcome.value
    )


__all__ = [
    "AuthCallbackReconciler",
    "CallbackResult",
    "CodeExchanger",
    "build_error_location",
    "is_already_consumed",
    "safe_next",
]

"""
FastAPI routes for the Fit Track backend.

``router`` is mounted under ``/api``; ``pages_router`` serves the browser-facing
``/auth/*`` URLs the identity provider redirects to.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from fittrack.clients.supabase_auth import (
    SupabaseAuthClient,
    code_challenge_for,
    generate_code_verifier,
)
from fittrack.dependencies import (
    get_app_settings,
    get_current_session,
    get_current_user_id,
    get_exchange_ledger,
    get_notification_config_store,
    get_notification_dispatcher,
    get_reminder_scheduler,
    get_session_store,
    get_supabase_auth_client,
    get_verifier_state_encoder,
)
from fittrack.schemas import (
    AuthErrorPage,
    CallbackParams,
    CallbackResponse,
    NotificationConfig,
    NotificationConfigUpdate,
    PermissionReport,
)
from fittrack.services.auth_callback import AuthCallbackReconciler, CallbackResult, safe_next

router = APIRouter()
pages_router = APIRouter()
logger = logging.getLogger(__name__)

_DEFAULT_ERROR_DESCRIPTION = "An error occurred during authentication."


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _callback_url(request: Request, settings: Any) -> str:
    if settings.public_base_url:
        return f"{str(settings.public_base_url).rstrip('/')}/auth/callback"
    return str(request.url_for("auth_callback_redirect"))


def _read_code_verifier(request: Request, settings: Any, encoder: Any) -> Optional[str]:
    """Return the PKCE verifier from the signed cookie, or None when unusable."""
    raw = request.cookies.get(settings.auth.verifier_cookie_name)
    if not raw:
        return None
    try:
        state = encoder.decode(raw)
    except HTTPException as exc:
        logger.warning("Ignoring PKCE verifier cookie: %s", exc.detail)
        return None

    issued_at_raw = state.get("issued_at")
    if not issued_at_raw:
        return None
    issued_at = datetime.fromisoformat(issued_at_raw)
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    age = datetime.now(timezone.utc) - issued_at
    if age > timedelta(seconds=settings.auth.verifier_ttl_seconds):
        logger.warning("Ignoring expired PKCE verifier cookie")
        return None
    return state.get("verifier")


async def _reconcile(
    request: Request,
    params: CallbackParams,
    auth_client: Any,
    ledger: Any,
    encoder: Any,
    settings: Any,
) -> CallbackResult:
    reconciler = AuthCallbackReconciler(
        auth_client,
        settings.auth,
        ledger=ledger,
        code_verifier=_read_code_verifier(request, settings, encoder),
    )
    navigations: list[str] = []
    result = await reconciler.reconcile(params, navigations.append)
    level = logging.INFO if result.outcome.is_success else logging.WARNING
    logger.log(
        level, "Auth callback resolved to %s -> %s", result.outcome.value, navigations[-1]
    )
    return result


def _apply_session_cookies(
    request: Request,
    response: Response,
    result: CallbackResult,
    session_id: Optional[str],
    settings: Any,
) -> None:
    response.delete_cookie(settings.auth.verifier_cookie_name, path="/")
    if session_id is None or result.session is None:
        return
    response.set_cookie(
        settings.auth.session_cookie_name,
        session_id,
        max_age=result.session.expires_in,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        path="/",
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/{provider}/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    provider: str,
    auth_client: Annotated[Any, Depends(get_supabase_auth_client)],
    state_encoder: Annotated[Any, Depends(get_verifier_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    next: str | None = Query(
        default=None, description="Path to open once sign-in completes."
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Response:
    """Start the PKCE sign-in flow and hand the browser to the identity provider."""
    if provider not in SupabaseAuthClient.SUPPORTED_PROVIDERS:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Unsupported identity provider: {provider}",
        )

    next_path = safe_next(next, settings.auth.default_next)
    verifier = generate_code_verifier()
    redirect_to = f"{_callback_url(request, settings)}?{urlencode({'next': next_path})}"
    authorization_url = auth_client.build_authorization_url(
        provider=provider,
        redirect_to=redirect_to,
        code_challenge=code_challenge_for(verifier),
    )

    if redirect or _wants_html(request):
        response: Response = RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(content={"authorization_url": authorization_url})

    response.set_cookie(
        settings.auth.verifier_cookie_name,
        state_encoder.encode(
            {
                "verifier": verifier,
                "issued_at": datetime.now(timezone.utc).isoformat(),
            }
        ),
        max_age=settings.auth.verifier_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        path="/",
    )
    return response


@pages_router.get("/auth/callback", name="auth_callback_redirect")
async def auth_callback_redirect(
    request: Request,
    auth_client: Annotated[Any, Depends(get_supabase_auth_client)],
    ledger: Annotated[Any, Depends(get_exchange_ledger)],
    state_encoder: Annotated[Any, Depends(get_verifier_state_encoder)],
    session_store: Annotated[Any, Depends(get_session_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(None, description="Authorization code from the provider."),
    next: str | None = Query(None, description="Destination path after sign-in."),
    error: str | None = Query(None, description="Provider error code."),
    error_description: str | None = Query(None, description="Provider error text."),
) -> Response:
    """Eager server-side callback: exchange the code and redirect the browser."""
    params = CallbackParams(
        code=code, next=next, error=error, error_description=error_description
    )
    result = await _reconcile(request, params, auth_client, ledger, state_encoder, settings)
    session_id = session_store.save(result.session) if result.session else None
    response = RedirectResponse(
        url=result.location, status_code=HTTPStatus.TEMPORARY_REDIRECT
    )
    _apply_session_cookies(request, response, result, session_id, settings)
    return response


@router.post("/auth/callback", response_model=CallbackResponse)
async def auth_callback_client(
    request: Request,
    params: CallbackParams,
    auth_client: Annotated[Any, Depends(get_supabase_auth_client)],
    ledger: Annotated[Any, Depends(get_exchange_ledger)],
    state_encoder: Annotated[Any, Depends(get_verifier_state_encoder)],
    session_store: Annotated[Any, Depends(get_session_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> Response:
    """Deferred client-side callback: same reconciliation, answered as JSON."""
    result = await _reconcile(request, params, auth_client, ledger, state_encoder, settings)
    session_id = session_store.save(result.session) if result.session else None
    payload = CallbackResponse(
        outcome=result.outcome, location=result.location, session_id=session_id
    )
    response = JSONResponse(content=payload.model_dump(mode="json"))
    _apply_session_cookies(request, response, result, session_id, settings)
    return response


@pages_router.get("/auth/error", response_model=AuthErrorPage)
async def auth_error_page(
    settings: Annotated[Any, Depends(get_app_settings)],
    error: str | None = Query(None),
    error_description: str | None = Query(None),
) -> AuthErrorPage:
    """Authentication error page content with retry and continue targets."""
    return AuthErrorPage(
        error=error or "unknown_error",
        error_description=error_description or _DEFAULT_ERROR_DESCRIPTION,
        retry_path=settings.auth.error_page_path,
        continue_path=settings.auth.default_next,
    )


@router.get("/auth/session", status_code=HTTPStatus.OK)
async def current_session(
    session: Annotated[Any, Depends(get_current_session)],
) -> dict:
    """Describe the session referenced by the session cookie."""
    return {
        "user_id": session.user_id,
        "email": session.email,
        "expires_at": session.expires_at.isoformat(),
    }


@router.post("/auth/logout", status_code=HTTPStatus.OK)
async def logout(
    request: Request,
    response: Response,
    session_store: Annotated[Any, Depends(get_session_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Forget the server-side session and clear the cookie."""
    session_id = request.cookies.get(settings.auth.session_cookie_name)
    if session_id:
        session_store.delete(session_id)
    response.delete_cookie(settings.auth.session_cookie_name, path="/")
    return {"status": "signed_out"}


@router.get("/notifications/config", response_model=NotificationConfig)
async def get_notification_config(
    user_id: Annotated[str, Depends(get_current_user_id)],
    config_store: Annotated[Any, Depends(get_notification_config_store)],
) -> NotificationConfig:
    return config_store.get(user_id)


@router.put("/notifications/config", response_model=NotificationConfig)
async def update_notification_config(
    changes: NotificationConfigUpdate,
    user_id: Annotated[str, Depends(get_current_user_id)],
    config_store: Annotated[Any, Depends(get_notification_config_store)],
    scheduler: Annotated[Any, Depends(get_reminder_scheduler)],
) -> NotificationConfig:
    """Apply a partial update; turning reminders on starts the loop if needed."""
    try:
        config = config_store.update(user_id, changes)
    except ValidationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc
    if config.can_notify:
        scheduler.start()
    return config


@router.post("/notifications/permission", status_code=HTTPStatus.OK)
async def report_notification_permission(
    report: PermissionReport,
    user_id: Annotated[str, Depends(get_current_user_id)],
    config_store: Annotated[Any, Depends(get_notification_config_store)],
    scheduler: Annotated[Any, Depends(get_reminder_scheduler)],
) -> dict:
    """Record the browser's permission answer for the signed-in user."""
    config = config_store.set_permission(user_id, report.permission)
    if report.permission == "denied":
        logger.warning("Notification permission denied for user %s", user_id)
    if config.can_notify:
        scheduler.start()
    return {"permission": config.permission, "granted": config.permission == "granted"}


@router.post("/notifications/test", status_code=HTTPStatus.ACCEPTED)
async def send_test_notification(
    user_id: Annotated[str, Depends(get_current_user_id)],
    dispatcher: Annotated[Any, Depends(get_notification_dispatcher)],
) -> dict:
    """Queue the test notification so the settings screen can verify delivery."""
    if not dispatcher.send_test(user_id):
        raise HTTPException(
            status_code=HTTPStatus.CONFLICT,
            detail="Notification permission has not been granted.",
        )
    return {"status": "queued"}


@router.get("/notifications/pending", status_code=HTTPStatus.OK)
async def pending_notifications(
    user_id: Annotated[str, Depends(get_current_user_id)],
    dispatcher: Annotated[Any, Depends(get_notification_dispatcher)],
    limit: int = Query(20, ge=1, le=100),
) -> dict:
    """Hand queued notifications to the client; each one is delivered once."""
    return {"notifications": dispatcher.pending(user_id, limit=limit)}


@router.get("/notifications/scheduler", status_code=HTTPStatus.OK)
async def reminder_scheduler_status(
    scheduler: Annotated[Any, Depends(get_reminder_scheduler)],
) -> dict:
    return {"active": scheduler.is_active}

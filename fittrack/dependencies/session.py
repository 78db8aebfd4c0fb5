"""
Resolve the signed-in user from the session cookie.
"""

from http import HTTPStatus
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from fittrack.services import StoredSession

from .clients import get_session_store
from .config import get_app_settings


def get_current_session(
    request: Request,
    session_store: Annotated[Any, Depends(get_session_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> StoredSession:
    """Return the live session behind the cookie or answer 401."""
    session_id = request.cookies.get(settings.auth.session_cookie_name)
    if not session_id:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Not signed in.")
    try:
        session = session_store.get(session_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Session could not be read."
        ) from exc
    if session is None or session.expired:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Session expired.")
    return session


def get_current_user_id(
    session: Annotated[StoredSession, Depends(get_current_session)],
) -> str:
    """User id of the signed-in session; sessions without one cannot own data."""
    if not session.user_id:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Session has no user."
        )
    return session.user_id


__all__ = ["get_current_session", "get_current_user_id"]

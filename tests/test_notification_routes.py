try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from fittrack.clients.notification_outbox import NotificationOutbox
from fittrack.clients.sqlite_store import SQLiteStore
from fittrack.main import app
from fittrack.schemas import AuthSession
from fittrack.services.notifications import NotificationConfigStore, NotificationDispatcher
from fittrack.services.session_store import SessionStore
from fittrack.services.token_cipher import TokenCipherService

pytestmark = pytest.mark.anyio("asyncio")

SESSION_COOKIE = "fittrack-session"


class RecordingScheduler:
    def __init__(self) -> None:
        self.starts = 0

    @property
    def is_active(self) -> bool:
        return self.starts > 0

    def start(self) -> bool:
        self.starts += 1
        return self.starts == 1


@pytest.fixture()
def overrides(tmp_path):
    from fittrack import dependencies

    db_path = str(tmp_path / "notifications.db")
    records = SQLiteStore(db_path)
    configs = NotificationConfigStore(records)
    dispatcher = NotificationDispatcher(configs, NotificationOutbox(db_path))
    sessions = SessionStore(records, TokenCipherService(secret="secret"))
    scheduler = RecordingScheduler()

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_notification_config_store: lambda: configs,
            dependencies.get_notification_dispatcher: lambda: dispatcher,
            dependencies.get_reminder_scheduler: lambda: scheduler,
            dependencies.get_session_store: lambda: sessions,
        }
    )

    yield configs, scheduler, sessions, dispatcher

    app.dependency_overrides.clear()


def _sign_in(sessions: SessionStore, user_id: str | None) -> str:
    return sessions.save(
        AuthSession(access_token="access", refresh_token="refresh", user_id=user_id)
    )


@pytest.fixture()
async def anonymous(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


@pytest.fixture()
async def client(overrides):
    sessions = overrides[2]
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        cookies={SESSION_COOKIE: _sign_in(sessions, "u1")},
    ) as test_client:
        yield test_client


async def test_config_defaults_for_new_user(client):
    response = await client.get("/api/notifications/config")

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == "u1"
    assert data["enabled"] is False
    assert data["permission"] == "default"
    assert data["reminders"]["lunch"] == {"enabled": True, "time": "12:30", "weekdays": []}
    assert data["reminders"]["weight"]["weekdays"] == [1]


@pytest.mark.parametrize(
    "method, path, body",
    [
        ("GET", "/api/notifications/config", None),
        ("PUT", "/api/notifications/config", {"enabled": True}),
        ("POST", "/api/notifications/permission", {"permission": "granted"}),
        ("POST", "/api/notifications/test", None),
        ("GET", "/api/notifications/pending", None),
    ],
)
async def test_notification_endpoints_require_a_session(anonymous, method, path, body):
    response = await anonymous.request(method, path, json=body)

    assert response.status_code == 401


async def test_unknown_session_cookie_is_rejected(anonymous):
    anonymous.cookies.set(SESSION_COOKIE, "not-a-session")

    response = await anonymous.get("/api/notifications/pending")

    assert response.status_code == 401


async def test_session_without_user_is_rejected(overrides, anonymous):
    sessions = overrides[2]
    anonymous.cookies.set(SESSION_COOKIE, _sign_in(sessions, None))

    response = await anonymous.get("/api/notifications/config")

    assert response.status_code == 401


async def test_user_id_in_request_cannot_reach_another_user(overrides, client):
    configs, _, _, dispatcher = overrides
    configs.set_permission("victim", "granted")
    dispatcher.send_test("victim")

    await client.post(
        "/api/notifications/permission",
        params={"user_id": "victim"},
        json={"user_id": "victim", "permission": "denied"},
    )
    drained = await client.get("/api/notifications/pending", params={"user_id": "victim"})

    assert drained.json() == {"notifications": []}
    assert configs.get("victim").permission == "granted"
    assert configs.get("u1").permission == "denied"
    assert len(dispatcher.pending("victim")) == 1


async def test_partial_update_keeps_other_reminders(overrides, client):
    configs, scheduler, _, _ = overrides

    response = await client.put(
        "/api/notifications/config",
        json={
            "enabled": True,
            "timezone": "America/Sao_Paulo",
            "reminders": {"dinner": {"time": "20:15"}},
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["enabled"] is True
    assert data["reminders"]["dinner"]["time"] == "20:15"
    assert data["reminders"]["breakfast"]["time"] == "08:00"
    assert configs.get("u1").timezone == "America/Sao_Paulo"
    # Permission is still "default", so the loop is not needed yet.
    assert scheduler.starts == 0


async def test_update_rejects_unknown_time_zone(client):
    response = await client.put(
        "/api/notifications/config", json={"timezone": "Nowhere/Land"}
    )

    assert response.status_code == 422


async def test_granting_permission_starts_scheduler_for_enabled_user(overrides, client):
    _, scheduler, _, _ = overrides
    await client.put("/api/notifications/config", json={"enabled": True})

    response = await client.post(
        "/api/notifications/permission", json={"permission": "granted"}
    )

    assert response.json() == {"permission": "granted", "granted": True}
    assert scheduler.starts == 1
    status = await client.get("/api/notifications/scheduler")
    assert status.json() == {"active": True}


async def test_denied_permission_is_recorded(overrides, client):
    configs, scheduler, _, _ = overrides

    response = await client.post(
        "/api/notifications/permission", json={"permission": "denied"}
    )

    assert response.json()["granted"] is False
    assert configs.get("u1").permission == "denied"
    assert scheduler.starts == 0


async def test_permission_rejects_unknown_state(client):
    response = await client.post(
        "/api/notifications/permission", json={"permission": "maybe"}
    )

    assert response.status_code == 422


async def test_test_notification_requires_permission(client):
    response = await client.post("/api/notifications/test")

    assert response.status_code == 409


async def test_test_notification_is_delivered_once(client):
    await client.post("/api/notifications/permission", json={"permission": "granted"})

    queued = await client.post("/api/notifications/test")
    first = await client.get("/api/notifications/pending")
    second = await client.get("/api/notifications/pending")

    assert queued.status_code == 202
    notifications = first.json()["notifications"]
    assert len(notifications) == 1
    assert notifications[0]["title"] == "Test notification"
    assert notifications[0]["url"] == "/chat"
    assert second.json() == {"notifications": []}

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from fittrack.core.config import AuthCallbackSettings, ReminderSettings, SupabaseSettings


def test_callback_defaults():
    settings = AuthCallbackSettings()

    assert settings.default_next == "/home"
    assert settings.error_page_path == "/login"
    assert settings.exchange_timeout_seconds == 15.0
    assert settings.consumed_markers == ("already", "expired")


def test_consumed_markers_accept_comma_separated_env(monkeypatch):
    monkeypatch.setenv("AUTH_CONSUMED_MARKERS", "already, expired ,used,")

    assert AuthCallbackSettings().consumed_markers == ("already", "expired", "used")


def test_reminder_settings_from_env(monkeypatch):
    monkeypatch.setenv("REMINDERS_CHECK_INTERVAL", "30")
    monkeypatch.setenv("REMINDERS_AUTOSTART", "false")

    settings = ReminderSettings()

    assert settings.check_interval_seconds == 30.0
    assert settings.autostart is False


def test_supabase_auth_base_url_has_no_double_slash():
    settings = SupabaseSettings(
        SUPABASE_URL="https://project.supabase.example/", SUPABASE_ANON_KEY="k"
    )

    assert settings.auth_base_url == "https://project.supabase.example/auth/v1"

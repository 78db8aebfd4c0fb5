try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from fittrack.schemas import NotificationConfig, ReminderKind, ReminderSchedule
from fittrack.services.reminders import due_reminders

UTC = timezone.utc

# 2026-10-18 is a Sunday, 2026-10-19 a Monday.
SUNDAY_EVENING = datetime(2026, 10, 18, 19, 0, tzinfo=UTC)
MONDAY_NOON = datetime(2026, 10, 19, 12, 45, tzinfo=UTC)
TUESDAY_NOON = datetime(2026, 10, 20, 12, 45, tzinfo=UTC)


def _config(**overrides) -> NotificationConfig:
    data = {"user_id": "user-1", "enabled": True, "permission": "granted"}
    data.update(overrides)
    return NotificationConfig(**data)


def test_first_check_of_the_day_fires_everything_since_midnight():
    assert due_reminders(_config(), MONDAY_NOON) == [
        ReminderKind.BREAKFAST,
        ReminderKind.LUNCH,
        ReminderKind.WEIGHT,
    ]


def test_weekly_reminder_only_fires_on_its_weekday():
    assert due_reminders(_config(), TUESDAY_NOON) == [
        ReminderKind.BREAKFAST,
        ReminderKind.LUNCH,
    ]


def test_window_starts_at_previous_check_on_same_day():
    config = _config(last_checked=datetime(2026, 10, 19, 12, 0, tzinfo=UTC))

    assert due_reminders(config, MONDAY_NOON) == [ReminderKind.LUNCH]


def test_each_slot_fires_once_across_consecutive_ticks():
    config = _config(last_checked=datetime(2026, 10, 19, 12, 29, tzinfo=UTC))
    first = due_reminders(config, datetime(2026, 10, 19, 12, 30, tzinfo=UTC))

    config.last_checked = datetime(2026, 10, 19, 12, 30, tzinfo=UTC)
    second = due_reminders(config, datetime(2026, 10, 19, 12, 31, tzinfo=UTC))

    assert first == [ReminderKind.LUNCH]
    assert second == []


def test_window_wraps_midnight_when_last_check_was_yesterday():
    config = _config(last_checked=SUNDAY_EVENING)
    now = datetime(2026, 10, 19, 7, 30, tzinfo=UTC)

    assert due_reminders(config, now) == [ReminderKind.DINNER, ReminderKind.WEIGHT]


def test_wrapped_slot_uses_the_previous_days_weekday():
    reminders = {
        ReminderKind.WEIGHT: ReminderSchedule(time="20:00", weekdays=[0]),
    }
    config = _config(last_checked=SUNDAY_EVENING, reminders=reminders)
    now = datetime(2026, 10, 19, 7, 30, tzinfo=UTC)

    assert ReminderKind.WEIGHT in due_reminders(config, now)


def test_times_are_evaluated_in_the_users_time_zone():
    config = _config(timezone="America/Sao_Paulo")
    # 11:00 UTC is 08:00 in Sao Paulo.
    now = datetime(2026, 10, 19, 11, 0, tzinfo=UTC)

    assert due_reminders(config, now) == [ReminderKind.BREAKFAST, ReminderKind.WEIGHT]


def test_disabled_config_and_disabled_kinds_do_not_fire():
    assert due_reminders(_config(enabled=False), MONDAY_NOON) == []

    reminders = {ReminderKind.LUNCH: ReminderSchedule(enabled=False, time="12:30")}
    assert ReminderKind.LUNCH not in due_reminders(_config(reminders=reminders), MONDAY_NOON)


def test_previous_check_in_the_future_fires_nothing():
    config = _config(last_checked=datetime(2026, 10, 19, 13, 0, tzinfo=UTC))

    assert due_reminders(config, MONDAY_NOON) == []


def test_old_previous_check_starts_from_midnight():
    config = _config(last_checked=datetime(2026, 10, 10, 23, 0, tzinfo=UTC))

    assert due_reminders(config, TUESDAY_NOON) == [
        ReminderKind.BREAKFAST,
        ReminderKind.LUNCH,
    ]


def test_partial_reminders_are_merged_with_defaults():
    config = _config(reminders={ReminderKind.LUNCH: ReminderSchedule(time="13:05")})

    assert config.reminders[ReminderKind.LUNCH].time == "13:05"
    assert config.reminders[ReminderKind.BREAKFAST].time == "08:00"
    assert config.reminders[ReminderKind.WEIGHT].weekdays == [1]


@pytest.mark.parametrize("value", ["8am", "24:00", "12:60", "1230"])
def test_schedule_rejects_bad_times(value):
    with pytest.raises(ValidationError):
        ReminderSchedule(time=value)


def test_schedule_normalizes_time_and_weekdays():
    schedule = ReminderSchedule(time="7:5", weekdays=[3, 1, 3])

    assert schedule.time == "07:05"
    assert schedule.weekdays == [1, 3]
    assert schedule.minutes == 425


def test_config_rejects_unknown_time_zone():
    with pytest.raises(ValidationError):
        _config(timezone="Mars/Olympus_Mons")

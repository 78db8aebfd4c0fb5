"""Schemas for reminder configuration and notification payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

NotificationPermission = Literal["granted", "denied", "default"]


class ReminderKind(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    WEIGHT = "weight"


class ReminderSchedule(BaseModel):
    """When a single reminder kind should fire."""

    enabled: bool = True
    time: str = Field(..., description="Local time of day formatted as HH:MM.")
    weekdays: list[int] = Field(
        default_factory=list,
        description="Active weekdays, 0 = Sunday .. 6 = Saturday. Empty means daily.",
    )

    @field_validator("time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        hours, sep, minutes = value.partition(":")
        if not sep or not hours.isdigit() or not minutes.isdigit():
            raise ValueError("time must be formatted as HH:MM")
        if not (0 <= int(hours) < 24 and 0 <= int(minutes) < 60):
            raise ValueError("time must be a valid time of day")
        return f"{int(hours):02d}:{int(minutes):02d}"

    @field_validator("weekdays")
    @classmethod
    def _validate_weekdays(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))

    @property
    def minutes(self) -> int:
        hours, _, minutes = self.time.partition(":")
        return int(hours) * 60 + int(minutes)


def default_schedules() -> Dict[ReminderKind, ReminderSchedule]:
    return {
        ReminderKind.BREAKFAST: ReminderSchedule(time="08:00"),
        ReminderKind.LUNCH: ReminderSchedule(time="12:30"),
        ReminderKind.DINNER: ReminderSchedule(time="19:30"),
        ReminderKind.WEIGHT: ReminderSchedule(time="07:00", weekdays=[1]),
    }


class NotificationConfig(BaseModel):
    """A user's reminder preferences plus the scheduler's bookkeeping."""

    user_id: str
    enabled: bool = False
    permission: NotificationPermission = "default"
    timezone: str = "UTC"
    reminders: Dict[ReminderKind, ReminderSchedule] = Field(
        default_factory=default_schedules
    )
    last_checked: Optional[datetime] = None

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value

    @field_validator("reminders")
    @classmethod
    def _fill_missing_kinds(
        cls, value: Dict[ReminderKind, ReminderSchedule]
    ) -> Dict[ReminderKind, ReminderSchedule]:
        merged = default_schedules()
        merged.update(value)
        return merged

    @property
    def can_notify(self) -> bool:
        return self.enabled and self.permission == "granted"


class NotificationConfigUpdate(BaseModel):
    """Partial update sent by the settings screen."""

    enabled: Optional[bool] = None
    timezone: Optional[str] = None
    reminders: Optional[Dict[ReminderKind, ReminderSchedule]] = None


class PermissionReport(BaseModel):
    """Permission state reported by the host browser for the signed-in user."""

    permission: NotificationPermission


class ReminderMessage(BaseModel):
    title: str
    body: str
    icon: str = "/icons/icon-192.png"
    tag: str
    url: str = "/chat"


__all__ = [
    "NotificationConfig",
    "NotificationConfigUpdate",
    "NotificationPermission",
    "PermissionReport",
    "ReminderKind",
    "ReminderMessage",
    "ReminderSchedule",
    "default_schedules",
]

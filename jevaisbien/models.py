import re
from dataclasses import dataclass
from datetime import datetime, timezone

from jevaisbien.config import MAX_INTERVAL_HOURS, MIN_INTERVAL_HOURS

NOTIFY_EMAIL = "email"
NOTIFY_SMS = "sms"

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


class MalformedRow(ValueError):
    pass


_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def _pad_fraction(raw: str) -> str:
    # PostgREST trims trailing zeros; fromisoformat before 3.11 wants 3 or 6 digits.
    return _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw, count=1)


def _text(row: dict, key: str, user_id) -> str:
    value = row.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedRow(f"profile {user_id} has non-text {key}")
    return value.strip()


def parse_iso(value: str | datetime | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(_pad_fraction(raw))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat()


@dataclass
class UserSafetyProfile:
    user_id: str
    interval_hours: int
    last_checkin_at: datetime | None = None
    onboarding_complete: bool = False
    notification_method: str = NOTIFY_EMAIL
    name: str = ""
    email: str | None = None
    phone: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "UserSafetyProfile":
        user_id = row.get("user_id")
        if not user_id:
            raise MalformedRow("profile row missing user_id")

        raw_interval = row.get("checkin_interval_hours")
        if raw_interval is None or isinstance(raw_interval, bool):
            raise MalformedRow(f"profile {user_id} missing checkin_interval_hours")
        try:
            interval = int(raw_interval)
        except (TypeError, ValueError):
            raise MalformedRow(f"profile {user_id} has invalid checkin_interval_hours")
        if interval != raw_interval and str(interval) != str(raw_interval).strip():
            raise MalformedRow(f"profile {user_id} has non-integer checkin_interval_hours")
        if not MIN_INTERVAL_HOURS <= interval <= MAX_INTERVAL_HOURS:
            raise MalformedRow(f"profile {user_id} checkin_interval_hours out of range")

        try:
            last_checkin_at = parse_iso(row.get("last_checkin_at"))
        except ValueError:
            raise MalformedRow(f"profile {user_id} has invalid last_checkin_at")

        method = _text(row, "notification_method", user_id).lower() or NOTIFY_EMAIL
        name = _text(row, "name", user_id)
        email = _text(row, "email", user_id) or None
        phone = _text(row, "phone", user_id) or None
        return cls(
            user_id=str(user_id),
            interval_hours=interval,
            last_checkin_at=last_checkin_at,
            onboarding_complete=bool(row.get("has_completed_onboarding")),
            notification_method=method,
            name=name,
            email=email,
            phone=phone,
        )


@dataclass
class EmergencyContact:
    id: str
    user_id: str
    name: str
    email: str
    is_primary: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "EmergencyContact":
        return cls(
            id=str(row.get("id")),
            user_id=str(row.get("user_id")),
            name=(row.get("name") or "").strip(),
            email=(row.get("email") or "").strip(),
            is_primary=bool(row.get("is_primary")),
        )


@dataclass
class AlertLogEntry:
    user_id: str
    contact_id: str | None
    sent_at: datetime
    status: str
    error_message: str | None = None

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "contact_id": self.contact_id,
            "alert_sent_at": iso_utc(self.sent_at),
            "status": self.status,
            "error_message": self.error_message,
        }


@dataclass
class ReminderLogEntry:
    user_id: str
    deadline_at: datetime
    sent_at: datetime

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "deadline_at": iso_utc(self.deadline_at),
            "reminder_sent_at": iso_utc(self.sent_at),
        }

import os

DEFAULT_FROM_EMAIL = "Je Vais Bien <onboarding@resend.dev>"

REMINDER_LEAD_HOURS = 2
ALERT_WINDOW_HOURS = 4
MIN_INTERVAL_HOURS = 1
MAX_INTERVAL_HOURS = 168


def env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


def get_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def reminder_lead_hours() -> int:
    return get_int("OVERDUE_REMINDER_LEAD_HOURS", REMINDER_LEAD_HOURS)


def alert_window_hours() -> int:
    return get_int("OVERDUE_ALERT_WINDOW_HOURS", ALERT_WINDOW_HOURS)


def from_email() -> str:
    return env("ALERTS_FROM_EMAIL") or DEFAULT_FROM_EMAIL


def send_timeout_sec() -> int:
    return get_int("OVERDUE_SEND_TIMEOUT_SEC", 20)


def poll_interval_sec() -> int:
    return get_int("OVERDUE_POLL_INTERVAL_SEC", 300)


def dry_run() -> bool:
    return get_bool("OVERDUE_DRY_RUN", False)

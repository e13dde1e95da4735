import os
from datetime import datetime

from dotenv import load_dotenv
from supabase import ClientOptions
from supabase import create_client as _create_client

from jevaisbien.config import get_int
from jevaisbien.models import (
    AlertLogEntry,
    EmergencyContact,
    ReminderLogEntry,
    iso_utc,
)

_ENV_PATH = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(_ENV_PATH)

PROFILES = "profiles"
CONTACTS = "emergency_contacts"
ALERTS_LOG = "alerts_log"
REMINDERS_LOG = "reminders_log"

_sb = None


def create_client(url: str | None = None, key: str | None = None):
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")
    if not url or not key:
        missing = []
        if not url:
            missing.append("SUPABASE_URL")
        if not key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY or SUPABASE_KEY")
        raise RuntimeError(f"Missing {', '.join(missing)}")
    options = ClientOptions(postgrest_client_timeout=get_int("SUPABASE_TIMEOUT_SEC", 10))
    return _create_client(url, key, options=options)


def get_client():
    global _sb
    if _sb:
        return _sb

    _sb = create_client()
    return _sb


def fetch_active_profiles(sb) -> list[dict]:
    # Rows stay raw so one malformed profile cannot fail the whole listing.
    res = sb.table(PROFILES).select("*").eq("has_completed_onboarding", True).execute()
    return res.data or []


def fetch_contacts(sb, user_id: str) -> list[EmergencyContact]:
    res = sb.table(CONTACTS).select("*").eq("user_id", user_id).execute()
    return [EmergencyContact.from_row(row) for row in (res.data or [])]


def fetch_alerts_since(sb, user_id: str, since: datetime) -> list[dict]:
    res = (
        sb.table(ALERTS_LOG)
        .select("id,alert_sent_at,status")
        .eq("user_id", user_id)
        .gte("alert_sent_at", iso_utc(since))
        .execute()
    )
    return res.data or []


def fetch_reminders_for_deadline(sb, user_id: str, deadline_at: datetime) -> list[dict]:
    res = (
        sb.table(REMINDERS_LOG)
        .select("id,reminder_sent_at")
        .eq("user_id", user_id)
        .eq("deadline_at", iso_utc(deadline_at))
        .limit(1)
        .execute()
    )
    return res.data or []


def insert_alert_log(sb, entry: AlertLogEntry) -> None:
    sb.table(ALERTS_LOG).insert(entry.to_row()).execute()


def insert_reminder_log(sb, entry: ReminderLogEntry) -> None:
    sb.table(REMINDERS_LOG).insert(entry.to_row()).execute()

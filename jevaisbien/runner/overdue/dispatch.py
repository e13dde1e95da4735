import html
from datetime import datetime, timezone
from typing import Tuple

import requests

from jevaisbien import config
from jevaisbien.db import fetch_contacts, insert_alert_log, insert_reminder_log
from jevaisbien.models import (
    NOTIFY_SMS,
    STATUS_FAILED,
    STATUS_SUCCESS,
    AlertLogEntry,
    EmergencyContact,
    ReminderLogEntry,
    UserSafetyProfile,
)

RESEND_URL = "https://api.resend.com/emails"

# Persisted on failed alert rows; raw transport errors only go to stdout.
ALERT_FAILED_MESSAGE = "Email delivery failed"


class TransportError(RuntimeError):
    pass


class ResendTransport:
    def __init__(self, api_key: str | None = None, timeout: int | None = None):
        self.api_key = api_key or config.env("RESEND_API_KEY")
        self.timeout = timeout or config.send_timeout_sec()

    def send(self, from_email: str, to_email: str, subject: str, html_body: str) -> Tuple[bool, str]:
        if not self.api_key:
            raise TransportError("missing env RESEND_API_KEY")
        resp = requests.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            json={"from": from_email, "to": [to_email], "subject": subject, "html": html_body},
            timeout=self.timeout,
        )
        if 200 <= resp.status_code < 300:
            return True, ""
        return False, f"resend_status={resp.status_code} body={resp.text[:200]}"


class DryRunTransport:
    def send(self, from_email: str, to_email: str, subject: str, html_body: str) -> Tuple[bool, str]:
        print(f"OVERDUE_DRY_RUN subject_len={len(subject)} body_len={len(html_body)}")
        return True, ""


def default_transport():
    if config.dry_run():
        return DryRunTransport()
    return ResendTransport()


def _display_name(profile_name: str | None, fallback: str) -> str:
    return html.escape((profile_name or "").strip() or fallback)


def render_alert(user_name: str | None, contact_name: str | None, hours_overdue: int, interval_hours: int | None = None) -> Tuple[str, str]:
    subject_name = (user_name or "").strip() or "Utilisateur"
    subject = f"⚠️ Alerte: {subject_name} n'a pas fait son check-in"

    who = _display_name(user_name, "Votre proche")
    greeting = _display_name(contact_name, "")
    if interval_hours is not None:
        since = (
            f"depuis plus de <strong>{interval_hours + hours_overdue} heures</strong> "
            f"(échéance dépassée de {hours_overdue} h)"
        )
    else:
        since = f"depuis plus de <strong>{hours_overdue} heures</strong>"

    body = f"""
<div style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #dc2626; font-size: 24px;">⚠️ Alerte de sécurité</h1>
  <p style="font-size: 18px; color: #333;">Bonjour {greeting},</p>
  <p style="font-size: 18px; color: #333;">
    <strong>{who}</strong> n'a pas confirmé qu'il/elle allait bien {since}.
  </p>
  <p style="font-size: 18px; color: #333;">
    Merci de le/la contacter pour vérifier que tout va bien.
  </p>
  <hr style="border: 1px solid #eee; margin: 30px 0;" />
  <p style="font-size: 14px; color: #666;">
    Cet email a été envoyé automatiquement par l'application "Je Vais Bien".
  </p>
</div>
""".strip()
    return subject, body


def render_reminder(user_name: str | None, deadline: datetime) -> Tuple[str, str]:
    subject = "⏰ Rappel: confirmez que vous allez bien"
    greeting = _display_name(user_name, "")
    when = deadline.astimezone(timezone.utc).strftime("%d/%m/%Y à %H:%M UTC")
    body = f"""
<div style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #f59e0b; font-size: 24px;">⏰ Rappel</h1>
  <p style="font-size: 18px; color: #333;">Bonjour {greeting},</p>
  <p style="font-size: 18px; color: #333;">
    Pensez à confirmer que vous allez bien avant le <strong>{when}</strong>.
    Passé ce délai, vos contacts d'urgence seront prévenus.
  </p>
  <hr style="border: 1px solid #eee; margin: 30px 0;" />
  <p style="font-size: 14px; color: #666;">
    Cet email a été envoyé automatiquement par l'application "Je Vais Bien".
  </p>
</div>
""".strip()
    return subject, body


def _email_channel(profile: UserSafetyProfile) -> str:
    if profile.notification_method == NOTIFY_SMS:
        print(f"OVERDUE_SMS_UNSUPPORTED user_id={profile.user_id} fallback=email")
    return "email"


def _send(transport, from_email: str, to_email: str, subject: str, body: str) -> Tuple[bool, str]:
    try:
        return transport.send(from_email, to_email, subject, body)
    except Exception as exc:
        return False, f"send_exception={type(exc).__name__}:{str(exc)[:200]}"


def send_alert_to_contact(
    sb,
    transport,
    profile: UserSafetyProfile,
    contact: EmergencyContact,
    hours_overdue: int,
    now: datetime,
    from_email: str,
) -> bool:
    subject, body = render_alert(profile.name, contact.name, hours_overdue, profile.interval_hours)
    ok, err = _send(transport, from_email, contact.email, subject, body)
    if ok:
        print(f"OVERDUE_ALERT_SENT user_id={profile.user_id} contact_id={contact.id} hours_overdue={hours_overdue}")
        entry = AlertLogEntry(profile.user_id, contact.id, now, STATUS_SUCCESS)
    else:
        print(f"OVERDUE_ALERT_FAIL user_id={profile.user_id} contact_id={contact.id} err={err}")
        entry = AlertLogEntry(profile.user_id, contact.id, now, STATUS_FAILED, ALERT_FAILED_MESSAGE)
    try:
        insert_alert_log(sb, entry)
    except Exception as exc:
        # The email outcome stands; the next cycle may repeat it without the row.
        print(
            f"OVERDUE_ALERT_LOG_FAIL user_id={profile.user_id} contact_id={contact.id} "
            f"err={type(exc).__name__}"
        )
    return ok


def send_alerts(
    sb,
    transport,
    profile: UserSafetyProfile,
    hours_overdue: int,
    now: datetime,
    from_email: str | None = None,
) -> int:
    """
    Alert every emergency contact of an overdue profile.
    Returns the number of successful sends.
    """
    from_email = from_email or config.from_email()
    _email_channel(profile)
    contacts = fetch_contacts(sb, profile.user_id)
    if not contacts:
        print(f"OVERDUE_SKIP user_id={profile.user_id} reason=no_contacts")
        return 0

    sent = 0
    for contact in contacts:
        if not contact.email:
            print(f"OVERDUE_SKIP user_id={profile.user_id} contact_id={contact.id} reason=contact_without_email")
            continue
        if send_alert_to_contact(sb, transport, profile, contact, hours_overdue, now, from_email):
            sent += 1
    return sent


def send_manual_alert(
    sb,
    transport,
    *,
    user_id: str,
    user_name: str | None,
    contact_email: str,
    contact_name: str | None,
    hours_overdue: int,
    now: datetime,
    from_email: str | None = None,
) -> bool:
    """Single alert outside the scheduler; logged without a contact id."""
    from_email = from_email or config.from_email()
    subject, body = render_alert(user_name, contact_name, hours_overdue)
    ok, err = _send(transport, from_email, contact_email, subject, body)
    if ok:
        print(f"OVERDUE_MANUAL_ALERT_SENT user_id={user_id} hours_overdue={hours_overdue}")
        entry = AlertLogEntry(user_id, None, now, STATUS_SUCCESS)
    else:
        print(f"OVERDUE_MANUAL_ALERT_FAIL user_id={user_id} err={err}")
        entry = AlertLogEntry(user_id, None, now, STATUS_FAILED, ALERT_FAILED_MESSAGE)
    insert_alert_log(sb, entry)
    return ok


def send_reminder(
    sb,
    transport,
    profile: UserSafetyProfile,
    deadline: datetime,
    now: datetime,
    from_email: str | None = None,
) -> bool:
    from_email = from_email or config.from_email()
    _email_channel(profile)
    if not profile.email:
        print(f"OVERDUE_SKIP user_id={profile.user_id} reason=no_self_email")
        return False

    subject, body = render_reminder(profile.name, deadline)
    ok, err = _send(transport, from_email, profile.email, subject, body)
    if ok:
        print(f"OVERDUE_REMINDER_SENT user_id={profile.user_id} deadline_at={deadline.isoformat()}")
    else:
        print(f"OVERDUE_REMINDER_FAIL user_id={profile.user_id} err={err}")
    # Recorded on every attempt so the occurrence is not reminded twice.
    insert_reminder_log(sb, ReminderLogEntry(profile.user_id, deadline, now))
    return ok

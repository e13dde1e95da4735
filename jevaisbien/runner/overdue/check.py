import argparse
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from jevaisbien import config
from jevaisbien.db import fetch_active_profiles, get_client
from jevaisbien.models import UserSafetyProfile
from jevaisbien.runner.overdue.dedup import AlertWindowPolicy, ReminderOccurrencePolicy
from jevaisbien.runner.overdue.deadline import (
    ALERT_DUE,
    REMINDER_DUE,
    classify,
    compute_deadline,
)
from jevaisbien.runner.overdue.dispatch import default_transport, send_alerts, send_reminder


@dataclass
class CheckResult:
    alerts_sent: int = 0
    reminders_sent: int = 0
    checked: int = 0
    skipped: int = 0
    suppressed: int = 0
    failed: int = 0


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def process_profile(
    sb,
    transport,
    profile: UserSafetyProfile,
    now: datetime,
    *,
    reminder_lead_hours: int,
    alert_policy: AlertWindowPolicy,
    reminder_policy: ReminderOccurrencePolicy,
    from_email: str,
) -> tuple[str, int]:
    """
    Classify one profile and send whatever is due.
    Returns (outcome, sent) where outcome is one of
    normal / no_checkin / suppressed / alert / reminder.
    """
    window = compute_deadline(profile.last_checkin_at, profile.interval_hours, reminder_lead_hours)
    if window is None:
        return "no_checkin", 0

    occ = classify(now, window.deadline, window.reminder_at, profile.interval_hours, reminder_lead_hours)
    if occ.state == ALERT_DUE:
        if alert_policy.already_sent(sb, profile.user_id, now=now, deadline=occ.deadline):
            print(f"OVERDUE_SUPPRESS user_id={profile.user_id} kind=alert")
            return "suppressed", 0
        return "alert", send_alerts(sb, transport, profile, occ.hours_overdue, now, from_email)

    if occ.state == REMINDER_DUE:
        if reminder_policy.already_sent(sb, profile.user_id, now=now, deadline=occ.deadline):
            return "suppressed", 0
        ok = send_reminder(sb, transport, profile, occ.deadline, now, from_email)
        return "reminder", 1 if ok else 0

    return "normal", 0


def run_once(
    sb,
    transport,
    now: datetime | None = None,
    *,
    reminder_lead_hours: int | None = None,
    alert_window_hours: int | None = None,
    from_email: str | None = None,
) -> CheckResult:
    """
    One scheduler cycle over every onboarded profile.

    A failure to list profiles propagates to the caller. Anything that goes
    wrong inside a single profile is printed and the loop moves on; nothing
    is retried here, the next cycle picks up whatever is still due.
    """
    now = now or now_utc()
    lead = reminder_lead_hours if reminder_lead_hours is not None else config.reminder_lead_hours()
    window = alert_window_hours if alert_window_hours is not None else config.alert_window_hours()
    alert_policy = AlertWindowPolicy(window)
    reminder_policy = ReminderOccurrencePolicy()
    from_email = from_email or config.from_email()

    result = CheckResult()
    rows = fetch_active_profiles(sb)
    for row in rows:
        result.checked += 1
        try:
            profile = UserSafetyProfile.from_row(row)
        except Exception as exc:
            # Any row that cannot be read is skipped, not fatal to the batch.
            print(f"OVERDUE_SKIP reason=malformed_row err={type(exc).__name__}:{str(exc)[:200]}")
            result.skipped += 1
            continue

        try:
            outcome, sent = process_profile(
                sb,
                transport,
                profile,
                now,
                reminder_lead_hours=lead,
                alert_policy=alert_policy,
                reminder_policy=reminder_policy,
                from_email=from_email,
            )
        except Exception as exc:
            print(f"OVERDUE_PROFILE_FAIL user_id={profile.user_id} err={type(exc).__name__}:{str(exc)[:200]}")
            result.failed += 1
            continue

        if outcome == "alert":
            result.alerts_sent += sent
        elif outcome == "reminder":
            result.reminders_sent += sent
        elif outcome == "suppressed":
            result.suppressed += 1
        elif outcome == "no_checkin":
            result.skipped += 1
    return result


def preview(rows: list[dict], now: datetime, reminder_lead_hours: int) -> list[dict]:
    """Classification of every row without touching the log tables."""
    out = []
    for row in rows:
        try:
            profile = UserSafetyProfile.from_row(row)
        except Exception as exc:
            out.append({"user_id": row.get("user_id"), "state": "malformed", "note": str(exc)})
            continue
        window = compute_deadline(profile.last_checkin_at, profile.interval_hours, reminder_lead_hours)
        if window is None:
            out.append({"user_id": profile.user_id, "state": "no_checkin"})
            continue
        occ = classify(now, window.deadline, window.reminder_at, profile.interval_hours, reminder_lead_hours)
        out.append(
            {
                "user_id": profile.user_id,
                "state": occ.state,
                "deadline_at": window.deadline.isoformat(),
                "reminder_at": window.reminder_at.isoformat(),
                "hours_overdue": occ.hours_overdue,
            }
        )
    return out


def run_cycle() -> int:
    start = time.time()
    try:
        result = run_once(get_client(), default_transport())
    except Exception as exc:
        dur_ms = int((time.time() - start) * 1000)
        print(f"OVERDUE_FAIL dur_ms={dur_ms} err={type(exc).__name__}:{str(exc)[:200]}")
        return 1
    dur_ms = int((time.time() - start) * 1000)
    stats = " ".join(f"{k}={v}" for k, v in asdict(result).items())
    print(f"OVERDUE_DONE {stats} dur_ms={dur_ms}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Overdue check-in scheduler.")
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit.")
    args = parser.parse_args()

    print(f"OVERDUE_START dry_run={1 if config.dry_run() else 0}")
    if args.once:
        return run_cycle()

    poll_interval_sec = config.poll_interval_sec()
    while True:
        exit_code = run_cycle()
        if exit_code != 0:
            time.sleep(min(30, max(3, poll_interval_sec // 10)))
        else:
            time.sleep(poll_interval_sec)


if __name__ == "__main__":
    raise SystemExit(main())

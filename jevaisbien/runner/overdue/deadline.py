import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from jevaisbien.config import REMINDER_LEAD_HOURS

NORMAL = "normal"
REMINDER_DUE = "reminder_due"
ALERT_DUE = "alert_due"

_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class Deadline:
    deadline: datetime
    reminder_at: datetime


@dataclass(frozen=True)
class Occurrence:
    state: str
    deadline: datetime
    hours_overdue: int = 0


def compute_deadline(
    last_checkin_at: datetime | None,
    interval_hours: int,
    reminder_lead_hours: int = REMINDER_LEAD_HOURS,
) -> Deadline | None:
    """
    Deadline and reminder instant for one check-in cycle.
    Returns None when the user has never checked in.
    """
    if last_checkin_at is None:
        return None
    deadline = last_checkin_at + timedelta(hours=interval_hours)
    return Deadline(deadline=deadline, reminder_at=deadline - timedelta(hours=reminder_lead_hours))


def classify(
    now: datetime,
    deadline: datetime,
    reminder_at: datetime,
    interval_hours: int,
    reminder_lead_hours: int = REMINDER_LEAD_HOURS,
) -> Occurrence:
    """
    normal:        now < reminder_at
    reminder_due:  reminder_at <= now < deadline, only when interval > lead
    alert_due:     now >= deadline
    """
    if now >= deadline:
        hours_overdue = math.floor((now - deadline) / _HOUR)
        return Occurrence(state=ALERT_DUE, deadline=deadline, hours_overdue=hours_overdue)
    if now >= reminder_at and interval_hours > reminder_lead_hours:
        return Occurrence(state=REMINDER_DUE, deadline=deadline)
    return Occurrence(state=NORMAL, deadline=deadline)

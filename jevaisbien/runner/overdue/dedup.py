from datetime import datetime, timedelta

from jevaisbien.config import ALERT_WINDOW_HOURS
from jevaisbien.db import fetch_alerts_since, fetch_reminders_for_deadline


class AlertWindowPolicy:
    """
    Alerts stay overdue until the next check-in, so repeats are suppressed by
    time since the last attempt for the profile. Failed attempts count too.
    """

    kind = "alert"

    def __init__(self, window_hours: int = ALERT_WINDOW_HOURS):
        self.window = timedelta(hours=window_hours)

    def already_sent(self, sb, user_id: str, *, now: datetime, deadline: datetime) -> bool:
        return bool(fetch_alerts_since(sb, user_id, now - self.window))


class ReminderOccurrencePolicy:
    """
    One reminder per deadline occurrence, keyed on (user_id, deadline_at),
    independent of how often the batch runs.
    """

    kind = "reminder"

    def already_sent(self, sb, user_id: str, *, now: datetime, deadline: datetime) -> bool:
        return bool(fetch_reminders_for_deadline(sb, user_id, deadline))

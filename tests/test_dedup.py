from datetime import timedelta

from conftest import NOW, hours_ago

from jevaisbien.runner.overdue.dedup import AlertWindowPolicy, ReminderOccurrencePolicy


class TestAlertWindowPolicy:
    def test_recent_alert_suppresses(self, sb):
        sb.add("alerts_log", user_id="u1", contact_id="c1", alert_sent_at=hours_ago(1), status="success")
        assert AlertWindowPolicy(4).already_sent(sb, "u1", now=NOW, deadline=NOW)

    def test_failed_attempt_also_counts(self, sb):
        sb.add("alerts_log", user_id="u1", contact_id="c1", alert_sent_at=hours_ago(3.9), status="failed")
        assert AlertWindowPolicy(4).already_sent(sb, "u1", now=NOW, deadline=NOW)

    def test_window_lower_bound_is_inclusive(self, sb):
        sb.add("alerts_log", user_id="u1", contact_id="c1", alert_sent_at=hours_ago(4), status="success")
        assert AlertWindowPolicy(4).already_sent(sb, "u1", now=NOW, deadline=NOW)

    def test_old_alert_does_not_suppress(self, sb):
        sb.add("alerts_log", user_id="u1", contact_id="c1", alert_sent_at=hours_ago(4.01), status="success")
        assert not AlertWindowPolicy(4).already_sent(sb, "u1", now=NOW, deadline=NOW)

    def test_other_profile_does_not_suppress(self, sb):
        sb.add("alerts_log", user_id="u2", contact_id="c9", alert_sent_at=hours_ago(1), status="success")
        assert not AlertWindowPolicy(4).already_sent(sb, "u1", now=NOW, deadline=NOW)

    def test_window_is_configurable(self, sb):
        sb.add("alerts_log", user_id="u1", contact_id="c1", alert_sent_at=hours_ago(2), status="success")
        assert not AlertWindowPolicy(1).already_sent(sb, "u1", now=NOW, deadline=NOW)


class TestReminderOccurrencePolicy:
    def test_same_deadline_suppresses(self, sb):
        deadline = NOW + timedelta(hours=1)
        sb.add("reminders_log", user_id="u1", deadline_at=deadline.isoformat(), reminder_sent_at=hours_ago(0.5))
        assert ReminderOccurrencePolicy().already_sent(sb, "u1", now=NOW, deadline=deadline)

    def test_deadline_written_with_z_suffix_still_matches(self, sb):
        deadline = NOW + timedelta(hours=1)
        sb.add("reminders_log", user_id="u1", deadline_at="2026-10-19T13:00:00Z", reminder_sent_at=hours_ago(0.5))
        assert ReminderOccurrencePolicy().already_sent(sb, "u1", now=NOW, deadline=deadline)

    def test_new_deadline_is_a_new_occurrence(self, sb):
        sb.add(
            "reminders_log",
            user_id="u1",
            deadline_at=(NOW - timedelta(hours=23)).isoformat(),
            reminder_sent_at=hours_ago(24),
        )
        assert not ReminderOccurrencePolicy().already_sent(sb, "u1", now=NOW, deadline=NOW + timedelta(hours=1))

    def test_independent_of_elapsed_time(self, sb):
        deadline = NOW + timedelta(minutes=5)
        sb.add("reminders_log", user_id="u1", deadline_at=deadline.isoformat(), reminder_sent_at=hours_ago(100))
        assert ReminderOccurrencePolicy().already_sent(sb, "u1", now=NOW, deadline=deadline)

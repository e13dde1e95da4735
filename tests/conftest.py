"""Shared fixtures: an in-memory stand-in for the Supabase query builder and a
recording email transport."""

from datetime import datetime, timedelta, timezone

import pytest

from jevaisbien.models import parse_iso

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def hours_ago(hours: float) -> str:
    return (NOW - timedelta(hours=hours)).isoformat()


def _as_comparable(value):
    if isinstance(value, str):
        try:
            return parse_iso(value)
        except ValueError:
            return value
    return value


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, sb, table: str):
        self.sb = sb
        self.table = table
        self.filters: list[tuple[str, str, object]] = []
        self.payload = None
        self.limit_n = None

    def select(self, _cols: str = "*"):
        return self

    def eq(self, col: str, value):
        self.filters.append((col, "eq", value))
        return self

    def gte(self, col: str, value):
        self.filters.append((col, "gte", value))
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def insert(self, row: dict):
        self.payload = dict(row)
        return self

    def _matches(self, row: dict) -> bool:
        for col, op, value in self.filters:
            have = _as_comparable(row.get(col))
            want = _as_comparable(value)
            if op == "eq" and have != want:
                return False
            if op == "gte" and (have is None or have < want):
                return False
        return True

    def execute(self):
        if self.payload is not None:
            self.sb.writes.append((self.table, self.payload))
            if self.table in self.sb.fail_writes:
                raise RuntimeError(f"insert into {self.table} failed")
            self.sb.tables.setdefault(self.table, []).append(self.payload)
            return FakeResult([self.payload])

        self.sb.reads.append((self.table, list(self.filters)))
        if self.table in self.sb.fail_reads:
            raise RuntimeError(f"select from {self.table} failed")
        rows = [r for r in self.sb.tables.get(self.table, []) if self._matches(r)]
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        return FakeResult(rows)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.reads: list[tuple[str, list]] = []
        self.writes: list[tuple[str, dict]] = []
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add(self, table: str, **row) -> dict:
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def read_tables(self) -> list[str]:
        return [t for t, _ in self.reads]


class FakeTransport:
    def __init__(self):
        self.sent: list[dict] = []
        self.raise_for: set[str] = set()
        self.reject_for: set[str] = set()

    def send(self, from_email, to_email, subject, html_body):
        if to_email in self.raise_for:
            raise ConnectionError(f"smtp relay refused {to_email}")
        if to_email in self.reject_for:
            return False, "resend_status=422 body=invalid"
        self.sent.append({"from": from_email, "to": to_email, "subject": subject, "html": html_body})
        return True, ""


@pytest.fixture
def sb():
    return FakeSupabase()


@pytest.fixture
def transport():
    return FakeTransport()


def add_profile(sb, user_id: str, *, last_checkin: str | None, interval: int = 24, **extra) -> dict:
    row = {
        "user_id": user_id,
        "name": extra.pop("name", f"User {user_id}"),
        "email": extra.pop("email", f"{user_id}@example.org"),
        "checkin_interval_hours": interval,
        "last_checkin_at": last_checkin,
        "has_completed_onboarding": extra.pop("onboarded", True),
    }
    row.update(extra)
    return sb.add("profiles", **row)


def add_contact(sb, user_id: str, contact_id: str, email: str | None = None, **extra) -> dict:
    return sb.add(
        "emergency_contacts",
        id=contact_id,
        user_id=user_id,
        name=extra.pop("name", f"Contact {contact_id}"),
        email=email if email is not None else f"{contact_id}@example.org",
        is_primary=extra.pop("is_primary", False),
    )

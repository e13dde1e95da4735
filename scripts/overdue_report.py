import argparse
import json

from jevaisbien import config
from jevaisbien.db import fetch_active_profiles, get_client
from jevaisbien.runner.overdue.check import now_utc, preview


def _format_row(row: dict) -> str:
    return (
        f"{(row.get('user_id') or '-'):<38}  "
        f"{row.get('state', ''):<12}  "
        f"{(row.get('reminder_at') or '-'):>32}  "
        f"{(row.get('deadline_at') or '-'):>32}  "
        f"{row.get('hours_overdue', 0):>5}  "
        f"{(row.get('note') or '')}"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Show overdue classification without sending anything.")
    parser.add_argument("--json", action="store_true")
    args = parser.parse_args()

    rows = preview(fetch_active_profiles(get_client()), now_utc(), config.reminder_lead_hours())

    if args.json:
        print(json.dumps(rows, ensure_ascii=False))
        return 0

    print(
        "user_id                                 state         "
        "reminder_at                       deadline_at                       "
        "over   notes"
    )
    for row in rows:
        print(_format_row(row))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

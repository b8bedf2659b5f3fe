"""Seed demo accounts, classes, lessons and a few timetable entries.

Run:
  PYTHONPATH=backend python scripts/seed_demo_school.py
"""

from __future__ import annotations

import logging
import os

from schoolboard.db.bootstrap import ensure_runtime_schema_compatibility
from schoolboard.db.seed import DEMO_ACCOUNTS, seed_demo_school
from schoolboard.db.session import SessionLocal

DEFAULT_PASSWORD = os.getenv("DEMO_PASSWORD", "DemoPass123!")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        counts = seed_demo_school(session, password=DEFAULT_PASSWORD)

    print("\nDemo school ready:")
    for key, value in counts.items():
        print(f"  - {key}: {value}")
    print("\nAccounts:")
    for account in DEMO_ACCOUNTS:
        print(f"  - {account['username']} | role={account['role'].value}")
    print(f"\nPassword for all demo accounts: {DEFAULT_PASSWORD}")


if __name__ == "__main__":
    main()

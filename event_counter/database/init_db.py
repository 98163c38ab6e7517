"""
Create the schema and optionally run a quick integrity check.

The check performs a full CRUD cycle on both tables (insert a user and an
event that references it, read them back, delete them) to confirm the
schema is in place and the foreign key resolves.

Usage:
    event-counter-init-db            # create tables
    event-counter-init-db --check    # create tables, then run the check
"""

import argparse
import sys

from sqlalchemy import inspect

from event_counter.auth_service.utils import generate_id
from event_counter.database import db_connection
from event_counter.database.models import Event, User

TABLES = ("users", "events")


def run_check() -> bool:
    """Insert, read back, and remove one user and one event."""
    print("--- Running Database Quick Test ---")

    existing = inspect(db_connection.engine).get_table_names()
    missing = [t for t in TABLES if t not in existing]
    for t in TABLES:
        print(f" - {t}: {'MISSING' if t in missing else 'Found'}")
    if missing:
        print("One or more tables are missing.")
        return False

    user_id = generate_id("user")
    event_id = generate_id("event")

    with db_connection.get_db() as db:
        try:
            db.add(User(id=user_id, email=f"{user_id}@example.com", name="Smoke Test"))
            db.flush()
            db.add(Event(id=event_id, name="Smoke Test Event", created_by=user_id))
            db.commit()

            event = db.get(Event, event_id, populate_existing=True)
            if event is None or event.created_by != user_id or event.adults != 0:
                print("Failed to read back the inserted event.")
                return False
            print(f"Found event: '{event.name}' created by {event.created_by}")
            print("\nDatabase test PASSED successfully!")
            return True
        finally:
            # Mandatory cleanup
            db.rollback()
            db.query(Event).filter(Event.id == event_id).delete()
            db.query(User).filter(User.id == user_id).delete()
            db.commit()
            print("Cleanup complete.")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the event counter schema.")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    parser.add_argument("--check", action="store_true", help="Run a CRUD smoke test afterwards")
    args = parser.parse_args(argv)

    if args.database_url:
        db_connection.configure_engine(args.database_url)

    db_connection.init_db()
    print(f"Schema ready on {db_connection.engine.url.render_as_string(hide_password=True)}")

    if args.check and not run_check():
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

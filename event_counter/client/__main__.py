"""
Minimal terminal front end for the counter client.

    python -m event_counter.client --url http://localhost:5050

Commands: list, add <name>, inc <event-id> <field>, spot <event-id>,
del <event-id>, admin, exit-admin, quit.
"""

import argparse
import getpass
import logging

from event_counter.client.api import CounterApiClient
from event_counter.client.session import CounterApp
from event_counter.client.state_store import DEFAULT_STATE_PATH, StateStore


def render(app: CounterApp) -> None:
    if app.banner:
        print(f"! {app.banner}")
    if not app.events:
        print("No events created yet." if app.is_admin else "No events available at this time.")
    for event in app.events:
        star = "*" if event["isSpotlighted"] else " "
        print(
            f"{star} {event['id']}  {event['name']}  adults={event['adults']} kids={event['kids']} "
            f"newsletter={event['newsletterSignups']} volunteers={event['volunteers']}"
        )


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Event counter client")
    parser.add_argument("--url", default="http://localhost:5050")
    parser.add_argument("--state", default=str(DEFAULT_STATE_PATH))
    parser.add_argument("--interval", type=float, default=30.0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(asctime)s - %(message)s")

    app = CounterApp(
        CounterApiClient(args.url),
        store=StateStore(args.state),
        alert=lambda message: print(f"!! {message}"),
        poll_interval=args.interval,
    )
    app.start()
    app.start_polling()
    print(f"ID: {app.user_id[:10]}...")

    try:
        while True:
            try:
                line = input("> ").strip()
            except EOFError:
                break
            command, _, rest = line.partition(" ")
            if command == "quit":
                break
            elif command == "list":
                app.refresh()
            elif command == "add":
                app.create_event(rest)
            elif command == "inc":
                event_id, _, field = rest.partition(" ")
                app.increment(event_id, field or "adults")
            elif command == "spot":
                app.set_spotlight(rest, True)
            elif command == "del":
                app.delete_event(rest)
            elif command == "admin":
                app.enter_admin(getpass.getpass("Enter admin password: "))
            elif command == "exit-admin":
                app.exit_admin()
            elif command:
                print("Unknown command")
                continue
            render(app)
    finally:
        app.close()


if __name__ == "__main__":
    main()

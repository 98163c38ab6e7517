"""
Client application state machine.

``CounterApp`` is the headless counterpart of the single-page client:

    uninitialized -> identity-ready -> loading-events -> events-loaded
                                                      | load-error

Admin mode is an orthogonal flag. Entering it needs a server-side password
check; leaving it is purely local.

The local event list is refreshed by polling and patched in place from the
response of every mutation. Each request takes a number from a monotonic
sequence so that a response issued before a newer, already-applied change
to the same event cannot overwrite it.
"""

import itertools
import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from event_counter.client.api import ApiClientError, CounterApiClient
from event_counter.client.state_store import StateStore

DEFAULT_POLL_INTERVAL = 30.0

COUNTER_FIELDS = ("adults", "kids", "newsletterSignups", "volunteers")

EventDict = Dict[str, Any]


class ClientState(str, Enum):
    UNINITIALIZED = "uninitialized"
    IDENTITY_READY = "identity-ready"
    LOADING_EVENTS = "loading-events"
    EVENTS_LOADED = "events-loaded"
    LOAD_ERROR = "load-error"


def _log_alert(message: str) -> None:
    logging.warning(f"[Client] {message}")


class CounterApp:
    """
    Args:
        api (CounterApiClient): Transport to the server.
        store (StateStore, optional): Persistent identity store.
        alert (callable, optional): Blocking-dialog hook for failures the
            user must acknowledge (create, delete, admin password).
        atomic_increments (bool): Use the server-side increment route
            instead of sending ``current + 1``.
    """

    def __init__(
        self,
        api: CounterApiClient,
        store: Optional[StateStore] = None,
        alert: Optional[Callable[[str], None]] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        atomic_increments: bool = False,
    ):
        self.api = api
        self.store = store or StateStore()
        self.alert = alert or _log_alert
        self.poll_interval = poll_interval
        self.atomic_increments = atomic_increments

        self.state = ClientState.UNINITIALIZED
        self.user_id: Optional[str] = None
        self.is_admin = False
        self.events: List[EventDict] = []
        self.banner = ""
        self.loading = True

        self._lock = threading.RLock()
        self._sequence = itertools.count(1)
        self._list_seq = 0
        self._event_seq: Dict[str, int] = {}
        self._stop = threading.Event()
        self._poller: Optional[threading.Thread] = None

    # --- lifecycle ---
    def start(self) -> None:
        """Resolve the local identity and register it with the server."""
        user_id = self.store.get_user_id()
        is_admin = self.store.get_is_admin()

        try:
            self.api.user_id = user_id
            self.api.is_admin = is_admin
            self.api.register(user_id, email=f"{user_id}@example.com", name="User", is_admin=is_admin)
        except ApiClientError as e:
            # Registration is best-effort
            logging.error(f"[Client] Failed to register user: {e}")

        with self._lock:
            self.user_id = user_id
            self.is_admin = is_admin
            self.state = ClientState.IDENTITY_READY

    def start_polling(self) -> None:
        if self._poller and self._poller.is_alive():
            return
        self._stop.clear()
        self._poller = threading.Thread(target=self._poll_loop, name="event-counter-poll", daemon=True)
        self._poller.start()

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            self.refresh()
            self._stop.wait(self.poll_interval)

    def stop(self) -> None:
        self._stop.set()
        if self._poller:
            self._poller.join(timeout=5)
            self._poller = None

    def close(self) -> None:
        self.stop()
        self.api.close()

    # --- polling ---
    def refresh(self) -> None:
        """Fetch the event list once and reconcile it with local state."""
        if not self.user_id:
            return

        seq = next(self._sequence)
        with self._lock:
            if self.state != ClientState.EVENTS_LOADED:
                self.state = ClientState.LOADING_EVENTS

        try:
            events = self.api.list_events()
        except ApiClientError as e:
            with self._lock:
                if seq >= self._list_seq:
                    self.banner = e.message or "Failed to fetch events"
                    self.state = ClientState.LOAD_ERROR
                self.loading = False
            return

        with self._lock:
            if seq < self._list_seq:
                logging.debug(f"[Client] Dropping stale poll #{seq}")
                return
            self.events = self._merge(events, seq)
            self._list_seq = seq
            self.banner = ""
            self.state = ClientState.EVENTS_LOADED
            self.loading = False

    def _merge(self, server_events: List[EventDict], seq: int) -> List[EventDict]:
        """
        Combine a poll result with local state. Events changed locally after
        the poll was issued keep their local version (or stay deleted).
        """
        local = {event["id"]: event for event in self.events}
        seen = set()
        merged: List[EventDict] = []

        for event in server_events:
            event_id = event["id"]
            seen.add(event_id)
            if self._event_seq.get(event_id, 0) > seq:
                if event_id in local:
                    merged.append(local[event_id])
            else:
                merged.append(event)

        # Created locally after the poll went out
        newer = [
            event for event in self.events
            if event["id"] not in seen and self._event_seq.get(event["id"], 0) > seq
        ]
        return newer + merged

    # --- local patches ---
    def _apply_event(self, event: EventDict, seq: int, prepend: bool = False) -> bool:
        with self._lock:
            if self._event_seq.get(event["id"], 0) > seq:
                return False
            self._event_seq[event["id"]] = seq

            if event.get("isSpotlighted"):
                # Cleared siblings count as mutated too, or an older poll restores their flag
                events = []
                for e in self.events:
                    if e["id"] != event["id"] and e.get("isSpotlighted"):
                        self._event_seq[e["id"]] = max(seq, self._event_seq.get(e["id"], 0))
                        e = dict(e, isSpotlighted=False)
                    events.append(e)
                self.events = events

            for index, existing in enumerate(self.events):
                if existing["id"] == event["id"]:
                    self.events[index] = event
                    break
            else:
                if prepend:
                    self.events.insert(0, event)
                else:
                    self.events.append(event)
            return True

    def _remove_event(self, event_id: str, seq: int) -> None:
        with self._lock:
            self._event_seq[event_id] = max(seq, self._event_seq.get(event_id, 0))
            self.events = [e for e in self.events if e["id"] != event_id]

    def get_event(self, event_id: str) -> Optional[EventDict]:
        with self._lock:
            for event in self.events:
                if event["id"] == event_id:
                    return event
        return None

    # --- mutations ---
    def create_event(self, name: str, description: str = "", is_spotlighted: bool = False) -> Optional[EventDict]:
        seq = next(self._sequence)
        try:
            event = self.api.create_event(name, description, is_spotlighted)
        except ApiClientError as e:
            self.alert(e.message or "Failed to create event")
            return None
        self._apply_event(event, seq, prepend=True)
        return event

    def increment(self, event_id: str, field: str) -> Optional[EventDict]:
        """
        Add one to a counter. Failures are only logged.

        Without ``atomic_increments`` the new absolute value is computed from
        the local copy, so concurrent clients can overwrite each other.
        """
        if field not in COUNTER_FIELDS:
            logging.error(f"[Client] Unknown counter {field}")
            return None

        seq = next(self._sequence)
        try:
            if self.atomic_increments:
                event = self.api.increment(event_id, field)
            else:
                current = self.get_event(event_id)
                if current is None:
                    logging.error(f"[Client] Unknown event {event_id}")
                    return None
                event = self.api.update_event(event_id, **{field: current[field] + 1})
        except ApiClientError as e:
            logging.error(f"[Client] Failed to increment {field}: {e}")
            return None
        self._apply_event(event, seq)
        return event

    def save_edit(self, event_id: str, name: str, description: str) -> Optional[EventDict]:
        seq = next(self._sequence)
        try:
            event = self.api.update_event(event_id, name=name, description=description)
        except ApiClientError as e:
            logging.error(f"[Client] Failed to save event: {e}")
            return None
        self._apply_event(event, seq)
        return event

    def set_spotlight(self, event_id: str, is_spotlighted: bool) -> Optional[EventDict]:
        seq = next(self._sequence)
        try:
            event = self.api.update_event(event_id, isSpotlighted=is_spotlighted)
        except ApiClientError as e:
            logging.error(f"[Client] Failed to update spotlight status: {e}")
            return None
        self._apply_event(event, seq)
        return event

    def delete_event(self, event_id: str) -> bool:
        seq = next(self._sequence)
        try:
            self.api.delete_event(event_id)
        except ApiClientError as e:
            self.alert(e.message or "Failed to delete event")
            return False
        self._remove_event(event_id, seq)
        return True

    # --- admin mode ---
    def enter_admin(self, password: Optional[str]) -> bool:
        """
        Switch to admin mode after a server-side password check.

        Args:
            password (str): The answer to the password prompt. None or empty
                means the prompt was cancelled.

        Returns:
            bool: True when admin mode is active afterwards.
        """
        if self.is_admin:
            return True
        if not password:
            return False

        try:
            self.api.verify_password(password)
        except ApiClientError as e:
            if e.status_code == 401:
                self.alert("Incorrect password. Admin mode access denied.")
            else:
                logging.error(f"[Client] Failed to verify password: {e}")
                self.alert("Error verifying password. Please try again.")
            return False

        self._set_admin(True)
        return True

    def exit_admin(self) -> None:
        self.api.drop_admin_credentials()
        self._set_admin(False)

    def _set_admin(self, value: bool) -> None:
        self.store.set_is_admin(value)
        with self._lock:
            self.is_admin = value
            self.api.is_admin = value
        # The visible event set depends on the admin flag
        self.refresh()

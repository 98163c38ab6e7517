"""
Durable per-installation client state.

A tiny key-value store persisted as JSON. Reads seed defaults on first use
(a fresh user identifier, admin mode off), so callers never see a missing
key. All access goes through ``get`` / ``set`` and the typed helpers below.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from event_counter.auth_service.utils import generate_id

DEFAULT_STATE_PATH = Path.home() / ".event_counter" / "state.json"

USER_ID_KEY = "userId"
IS_ADMIN_KEY = "isAdmin"


class StateStore:
    """JSON-file backed key-value store. ``path=None`` keeps state in memory."""

    def __init__(self, path: Optional[Union[str, Path]] = DEFAULT_STATE_PATH):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        data: Dict[str, Any] = {}
        if self.path and self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, json.JSONDecodeError) as e:
                logging.warning(f"[Client] Could not read state file {self.path}: {e}")
                data = {}

        self._data = data if isinstance(data, dict) else {}
        return self._data

    def _save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.path.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as fh:
            json.dump(self._data, fh, indent=2)
        os.replace(tmp_file, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._load()[key] = value
            self._save()

    # --- typed helpers ---
    def get_user_id(self) -> str:
        """Return the stored identifier, creating and persisting one if needed."""
        with self._lock:
            data = self._load()
            if not data.get(USER_ID_KEY):
                data[USER_ID_KEY] = generate_id("user")
                data[IS_ADMIN_KEY] = False
                self._save()
            return data[USER_ID_KEY]

    def get_is_admin(self) -> bool:
        return self.get(IS_ADMIN_KEY, False) is True

    def set_is_admin(self, value: bool) -> None:
        self.set(IS_ADMIN_KEY, bool(value))

"""
Thin HTTP wrapper around the event counter API.

Every call sends the caller identity as X-User-Id / X-Is-Admin headers and
raises ``ApiClientError`` for non-2xx answers, carrying the server's short
error message.
"""

from typing import Any, Dict, List, Optional

import requests

from event_counter.client.offline_cache import OfflineCacheAdapter


class ApiClientError(Exception):
    """A request failed. ``status_code`` is None when no response arrived."""

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class CounterApiClient:
    def __init__(
        self,
        base_url: str,
        user_id: Optional[str] = None,
        is_admin: bool = False,
        session: Optional[requests.Session] = None,
        adapter: Optional[OfflineCacheAdapter] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.is_admin = is_admin
        self.admin_token: Optional[str] = None
        self.timeout = timeout

        self.session = session or requests.Session()
        self.adapter = adapter or OfflineCacheAdapter()
        self.session.mount("http://", self.adapter)
        self.session.mount("https://", self.adapter)

    def _headers(self) -> Dict[str, str]:
        headers = {"X-Is-Admin": "true" if self.is_admin else "false"}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        if self.admin_token:
            headers["Authorization"] = f"Bearer {self.admin_token}"
        return headers

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiClientError(None, str(e)) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            message = body.get("error") if isinstance(body, dict) else None
            raise ApiClientError(response.status_code, message or response.reason or "Request failed")

        return body

    # --- auth ---
    def register(self, user_id: str, email: str = None, name: str = None, is_admin: bool = False) -> Dict[str, Any]:
        payload = {"userId": user_id, "isAdmin": is_admin}
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        return self._request("POST", "/api/auth/register", payload)

    def verify_password(self, password: str) -> Dict[str, Any]:
        body = self._request("POST", "/api/auth/verify-password", {"password": password})
        self.admin_token = body.get("token")
        return body

    def drop_admin_credentials(self) -> None:
        self.admin_token = None
        self.session.cookies.pop("adminToken", None)

    # --- events ---
    def list_events(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/events")

    def create_event(self, name: str, description: str = "", is_spotlighted: bool = False) -> Dict[str, Any]:
        return self._request("POST", "/api/events", {
            "name": name,
            "description": description,
            "isSpotlighted": is_spotlighted,
        })

    def get_event(self, event_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/events/{event_id}")

    def update_event(self, event_id: str, **fields: Any) -> Dict[str, Any]:
        return self._request("PATCH", f"/api/events/{event_id}", fields)

    def increment(self, event_id: str, field: str, amount: int = 1) -> Dict[str, Any]:
        return self._request("POST", f"/api/events/{event_id}/increment", {"field": field, "amount": amount})

    def delete_event(self, event_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/events/{event_id}")

    def close(self) -> None:
        self.session.close()

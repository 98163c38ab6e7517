"""
Offline-resilient transport for the counter client.

``OfflineCacheAdapter`` is a requests transport adapter that sits in front of
the real network adapter and applies two strategies:

- API calls (paths under ``/api/``) are network-first: fresh data when the
  server is reachable, the last cached copy otherwise.
- Everything else is cache-first: a cached copy is served without touching
  the network; misses are fetched and stored.

Only successful GET responses are cached. API snapshots are keyed on the
identity headers as well as the URL, since admins and visitors see
different event lists. When the network is down and
nothing is cached, a synthetic 503 JSON response is returned instead of
raising, so callers handle "offline" like any other HTTP failure.
"""

import json
import logging
from typing import Dict, Iterable, Optional, Tuple
from urllib.parse import urljoin, urlparse

import requests
from requests.adapters import BaseAdapter, HTTPAdapter
from requests.exceptions import ConnectionError, Timeout
from requests.structures import CaseInsensitiveDict

CACHE_NAME = "event-counter-v1"
API_CACHE = "event-counter-api-v1"
ASSETS_TO_CACHE = ("/",)

# API responses depend on who is asking
IDENTITY_HEADERS = ("X-User-Id", "X-Is-Admin")

# (status, reason, headers, body)
Snapshot = Tuple[int, str, Dict[str, str], bytes]


def cache_key(name: str, request: requests.PreparedRequest) -> str:
    if name != API_CACHE:
        return request.url
    identity = "|".join(request.headers.get(h, "") for h in IDENTITY_HEADERS)
    return f"{request.url}|{identity}"


def make_response(
    request: requests.PreparedRequest,
    status_code: int,
    content: bytes,
    headers: Optional[Dict[str, str]] = None,
    reason: str = "",
) -> requests.Response:
    """Build a fully-read ``requests.Response`` without a socket behind it."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = content
    response.encoding = "utf-8"
    response.url = request.url
    response.request = request
    return response


def offline_response(request: requests.PreparedRequest, message: str) -> requests.Response:
    body = json.dumps({"error": "You are offline", "message": message}).encode("utf-8")
    return make_response(
        request,
        503,
        body,
        headers={"Content-Type": "application/json"},
        reason="Service Unavailable",
    )


class OfflineCacheAdapter(BaseAdapter):
    """
    Caching front for another transport adapter.

    Args:
        network (BaseAdapter, optional): Adapter that performs real requests.
            Defaults to ``requests.adapters.HTTPAdapter``.
    """

    def __init__(self, network: Optional[BaseAdapter] = None):
        super().__init__()
        self.network = network or HTTPAdapter()
        self.caches: Dict[str, Dict[str, Snapshot]] = {CACHE_NAME: {}, API_CACHE: {}}

    # --- cache storage ---
    def open(self, name: str) -> Dict[str, Snapshot]:
        return self.caches.setdefault(name, {})

    def match(self, request: requests.PreparedRequest) -> Optional[requests.Response]:
        """Look the request up in every cache, like ``caches.match``."""
        if request.method != "GET":
            return None
        for name, cache in self.caches.items():
            snapshot = cache.get(cache_key(name, request))
            if snapshot is not None:
                status, reason, headers, body = snapshot
                return make_response(request, status, body, headers, reason)
        return None

    def put(self, name: str, request: requests.PreparedRequest, response: requests.Response) -> None:
        self.open(name)[cache_key(name, request)] = (
            response.status_code,
            response.reason,
            dict(response.headers),
            response.content,
        )

    def activate(self) -> None:
        """Drop caches left behind by other cache versions."""
        for name in list(self.caches):
            if name not in (CACHE_NAME, API_CACHE):
                logging.info(f"[Offline] Deleting old cache: {name}")
                del self.caches[name]

    def clear_cache(self) -> None:
        self.caches.pop(CACHE_NAME, None)
        logging.info("[Offline] Cache cleared")

    def precache(self, session: requests.Session, base_url: str, assets: Iterable[str] = ASSETS_TO_CACHE) -> None:
        """Warm the static cache. Assets that fail to load are skipped."""
        for asset in assets:
            try:
                session.get(urljoin(base_url, asset))
            except requests.RequestException as e:
                logging.info(f"[Offline] Some assets failed to cache: {e}")

    # --- transport ---
    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        if urlparse(request.url).path.startswith("/api/"):
            return self._network_first(request, **kwargs)
        return self._cache_first(request, **kwargs)

    def _fetch(self, request: requests.PreparedRequest, cache_name: str, **kwargs) -> requests.Response:
        response = self.network.send(request, **kwargs)
        if response.ok and request.method == "GET":
            self.put(cache_name, request, response)
        return response

    def _cache_first(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        cached = self.match(request)
        if cached is not None:
            logging.debug(f"[Offline] Serving from cache: {request.url}")
            return cached

        try:
            return self._fetch(request, CACHE_NAME, **kwargs)
        except (ConnectionError, Timeout) as e:
            logging.info(f"[Offline] Fetch failed for {request.url}: {e}")
            return offline_response(request, "This action requires an internet connection")

    def _network_first(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        try:
            return self._fetch(request, API_CACHE, **kwargs)
        except (ConnectionError, Timeout) as e:
            logging.info(f"[Offline] Network failed, trying cache: {request.url} ({e})")
            cached = self.match(request)
            if cached is not None:
                return cached
            return offline_response(request, "Unable to fetch data. Check your connection.")

    def close(self) -> None:
        self.network.close()

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Optional

import requests

from badgeforge.core.state import state
from badgeforge.canvas.placeholders import (
    STANDARD_FIELDS, display_name, merge_bindable_fields, normalize_header,
)

logger = logging.getLogger(__name__)

SAMPLE_RECORD: dict[str, str] = {
    "firstName": "John",
    "lastName": "Doe",
    "middleName": "A",
    "birthDate": "1990-01-15",
    "address": "123 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip": "62701",
    "phone": "(555) 123-4567",
    "email": "john.doe@example.com",
    "eventName": "Sample Event",
    "eventDate": "2026-06-01",
}

TEST_PRINT_RECORD: dict[str, str] = {
    "firstName": "TEST",
    "lastName": "PRINT",
    "eventName": "Test Print",
}


class HttpFieldSource:
    """Fetches an event's CSV header names from the badge server.

    The endpoint answers either a bare list or ``{"headers": [...]}``.
    """

    def __init__(self, base_url: str, event_id: str, timeout: float = 5.0,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.event_id = event_id
        self.timeout = timeout
        self.session = session

    @property
    def url(self) -> str:
        return f"{self.base_url}/api/events/{self.event_id}/csv-headers"

    def __call__(self) -> list[str]:
        # One-shot fetch unless the caller supplied a session to reuse
        get = self.session.get if self.session is not None else requests.get
        resp = get(self.url, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, dict):
            data = data.get("headers", [])
        if not isinstance(data, list):
            raise ValueError("Unexpected csv-headers payload")
        return [str(h) for h in data]

    @classmethod
    def from_state(cls) -> "HttpFieldSource":
        return cls(state.server_url, state.event_id, timeout=state.request_timeout)


class FieldCatalog:
    """Names the operator can bind a text field to.

    Starts out as the standard list so the palette is usable before (or
    without) a successful fetch of the event's custom fields.
    """

    def __init__(self) -> None:
        self.fields: list[str] = list(STANDARD_FIELDS)
        self.custom: list[str] = []
        self.error: Optional[Exception] = None

    def options(self) -> list[tuple[str, str]]:
        """(name, label) pairs for menus."""
        return [(n, display_name(n)) for n in self.fields]

    def apply(self, headers: Iterable[str]) -> list[str]:
        self.custom = [normalize_header(h) for h in headers if normalize_header(h)]
        self.fields = merge_bindable_fields(self.custom)
        self.error = None
        return self.fields

    def refresh(self, fetcher: Callable[[], Iterable[str]]) -> list[str]:
        """Fetch custom fields synchronously; failures keep the standard list."""
        try:
            headers = list(fetcher())
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.exception("Failed to fetch bindable fields; using standard fields")
            self.error = e
            self.fields = list(STANDARD_FIELDS)
            self.custom = []
            return self.fields
        return self.apply(headers)

    def refresh_async(
        self,
        fetcher: Callable[[], Iterable[str]],
        schedule: Callable[[Callable[[], Any]], Any],
        on_done: Optional[Callable[[list[str]], Any]] = None,
    ) -> threading.Thread:
        """Fetch on a worker thread; ``on_done`` runs via ``schedule`` on the UI thread."""

        def _worker():
            try:
                headers = list(fetcher())
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.exception("Failed to fetch bindable fields; using standard fields")
                schedule(lambda err=e: self._finish(None, err, on_done))
                return
            schedule(lambda: self._finish(headers, None, on_done))

        t = threading.Thread(target=_worker, daemon=True)
        t.start()
        return t

    def _finish(self, headers, error, on_done) -> None:
        if headers is None:
            self.error = error
        else:
            self.apply(headers)
        if on_done is not None:
            on_done(self.fields)

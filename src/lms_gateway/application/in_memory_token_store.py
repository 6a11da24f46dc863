"""Process-local access token store.

NOTE:
    Tokens kept here do not survive a restart. Use the SQLAlchemy store for
    reuse across processes.
"""

from __future__ import annotations

import threading

from lms_gateway.application.lms import AccessTokenStore, StoredAccessToken


class InMemoryAccessTokenStore(AccessTokenStore):
    """Keep encrypted tokens in process memory."""

    def __init__(self) -> None:
        self._tokens: dict[str, StoredAccessToken] = {}
        self._lock = threading.Lock()

    def load(self, lms_setup_id: str) -> StoredAccessToken | None:
        with self._lock:
            return self._tokens.get(lms_setup_id)

    def save(self, lms_setup_id: str, token: StoredAccessToken) -> None:
        with self._lock:
            self._tokens[lms_setup_id] = token

    def delete(self, lms_setup_id: str) -> None:
        with self._lock:
            self._tokens.pop(lms_setup_id, None)

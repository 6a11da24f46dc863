"""Application ports for persisting encrypted access tokens."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Protocol

from lms_gateway.application.lms import StoredAccessToken


class AccessTokenRepository(Protocol):
    """Repository port for lms_access_tokens persistence."""

    def get(self, lms_setup_id: str) -> StoredAccessToken | None:
        """Return stored token for setup if present."""
        ...

    def upsert(self, lms_setup_id: str, token: StoredAccessToken) -> None:
        """Insert or replace token for setup."""
        ...

    def remove(self, lms_setup_id: str) -> None:
        """Delete token for setup; no-op when absent."""
        ...


class AccessTokenUnitOfWork(Protocol):
    """Unit-of-work port around lms_access_tokens persistence."""

    tokens: AccessTokenRepository

    def __enter__(self) -> AccessTokenUnitOfWork:
        """Start transactional scope."""
        ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Finalize transactional scope."""
        ...

    def commit(self) -> None:
        """Commit transaction."""
        ...

    def rollback(self) -> None:
        """Rollback transaction."""
        ...


AccessTokenUnitOfWorkFactory = Callable[[], AccessTokenUnitOfWork]

"""SQLAlchemy unit-of-work and store for lms_access_tokens."""

from __future__ import annotations

from types import TracebackType

from sqlalchemy.orm import Session, sessionmaker

from lms_gateway.application.lms import AccessTokenStore, StoredAccessToken
from lms_gateway.application.token_persistence import (
    AccessTokenRepository,
    AccessTokenUnitOfWorkFactory,
)
from lms_gateway.infrastructure.db.token_repository import SqlAlchemyAccessTokenRepository


class _UninitializedTokenRepository(AccessTokenRepository):
    """Placeholder repository used before unit-of-work context is active."""

    def get(self, lms_setup_id: str) -> StoredAccessToken | None:
        raise RuntimeError("Unit of work is not active.")

    def upsert(self, lms_setup_id: str, token: StoredAccessToken) -> None:
        raise RuntimeError("Unit of work is not active.")

    def remove(self, lms_setup_id: str) -> None:
        raise RuntimeError("Unit of work is not active.")


class SqlAlchemyAccessTokenUnitOfWork:
    """Manage transactional scope for lms_access_tokens persistence."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None
        self.tokens: AccessTokenRepository = _UninitializedTokenRepository()

    def __enter__(self) -> SqlAlchemyAccessTokenUnitOfWork:
        self._session = self._session_factory()
        self.tokens = SqlAlchemyAccessTokenRepository(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc is not None:
            self.rollback()

        session = self._session
        self._session = None
        self.tokens = _UninitializedTokenRepository()
        if session is not None:
            session.close()

    def commit(self) -> None:
        session = self._require_session()
        session.commit()

    def rollback(self) -> None:
        session = self._session
        if session is not None:
            session.rollback()

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError("Unit of work is not active.")
        return self._session


class SqlAlchemyAccessTokenStore(AccessTokenStore):
    """``AccessTokenStore`` running each call in its own unit of work."""

    def __init__(self, uow_factory: AccessTokenUnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    @classmethod
    def from_session_factory(
        cls,
        session_factory: sessionmaker[Session],
    ) -> SqlAlchemyAccessTokenStore:
        return cls(lambda: SqlAlchemyAccessTokenUnitOfWork(session_factory))

    def load(self, lms_setup_id: str) -> StoredAccessToken | None:
        with self._uow_factory() as uow:
            return uow.tokens.get(lms_setup_id)

    def save(self, lms_setup_id: str, token: StoredAccessToken) -> None:
        with self._uow_factory() as uow:
            uow.tokens.upsert(lms_setup_id, token)
            uow.commit()

    def delete(self, lms_setup_id: str) -> None:
        with self._uow_factory() as uow:
            uow.tokens.remove(lms_setup_id)
            uow.commit()

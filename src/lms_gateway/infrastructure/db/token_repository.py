"""SQLAlchemy repository for encrypted access tokens."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import delete
from sqlalchemy.orm import Session

from lms_gateway.application.lms import StoredAccessToken
from lms_gateway.application.token_persistence import AccessTokenRepository
from lms_gateway.infrastructure.db.models import LmsAccessTokenModel


class SqlAlchemyAccessTokenRepository(AccessTokenRepository):
    """Persist and read lms_access_tokens rows via SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, lms_setup_id: str) -> StoredAccessToken | None:
        model = self._session.get(LmsAccessTokenModel, lms_setup_id)
        if model is None:
            return None
        return StoredAccessToken(
            ciphertext=model.ciphertext,
            token_type=model.token_type,
            expires_at=_as_utc(model.expires_at),
            stored_at=_as_utc(model.stored_at) or model.stored_at,
        )

    def upsert(self, lms_setup_id: str, token: StoredAccessToken) -> None:
        model = self._session.get(LmsAccessTokenModel, lms_setup_id)
        if model is None:
            model = LmsAccessTokenModel(lms_setup_id=lms_setup_id)
            self._session.add(model)
        model.ciphertext = token.ciphertext
        model.token_type = token.token_type
        model.expires_at = token.expires_at
        model.stored_at = token.stored_at

    def remove(self, lms_setup_id: str) -> None:
        self._session.execute(
            delete(LmsAccessTokenModel).where(LmsAccessTokenModel.lms_setup_id == lms_setup_id)
        )


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on read.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)

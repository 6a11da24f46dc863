"""Database infrastructure package."""

from lms_gateway.infrastructure.db.config import get_database_path, make_sqlite_url
from lms_gateway.infrastructure.db.session import (
    create_default_session_factory,
    create_session_factory,
    create_sqlite_engine,
)
from lms_gateway.infrastructure.db.token_uow import (
    SqlAlchemyAccessTokenStore,
    SqlAlchemyAccessTokenUnitOfWork,
)

__all__ = [
    "SqlAlchemyAccessTokenStore",
    "SqlAlchemyAccessTokenUnitOfWork",
    "create_default_session_factory",
    "create_session_factory",
    "create_sqlite_engine",
    "get_database_path",
    "make_sqlite_url",
]

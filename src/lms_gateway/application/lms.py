"""Application-level contracts for LMS adapters and their collaborators."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from lms_gateway.domain.connectivity import ConnectivityResult, ErrorType
from lms_gateway.domain.lms import (
    AccountDetails,
    LmsConfig,
    LmsConfigAttribute,
    LmsType,
    Page,
    QuizData,
)

if TYPE_CHECKING:
    from lms_gateway.application.result import Result


class LmsAPIError(RuntimeError):
    """Base error for typed LMS adapter failures."""

    error_type: ErrorType = ErrorType.QUIZ_ACCESS_API_REQUEST


class LmsConfigurationError(LmsAPIError):
    """Raised when an LMS configuration is incomplete or points at the wrong adapter."""

    error_type = ErrorType.MISSING_ATTRIBUTE

    def __init__(
        self,
        message: str,
        *,
        missing_attributes: Iterable[LmsConfigAttribute] = (),
    ) -> None:
        super().__init__(message)
        self.missing_attributes = tuple(missing_attributes)


class TokenRequestError(LmsAPIError):
    """Raised when no token endpoint candidate yields a usable access token."""

    error_type = ErrorType.TOKEN_REQUEST

    def __init__(self, message: str, *, attempted_paths: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.attempted_paths = tuple(attempted_paths)


class QuizAccessError(LmsAPIError):
    """Raised when an authenticated listing call fails."""

    error_type = ErrorType.QUIZ_ACCESS_API_REQUEST


class QuizRestrictionError(LmsAPIError):
    """Raised when the LMS answers but restricts what the client may list."""

    error_type = ErrorType.QUIZ_RESTRICTION_API_REQUEST


class InvalidQueryError(QuizAccessError):
    """Raised when call parameters violate the adapter contract."""


def connectivity_of(error: LmsAPIError) -> ConnectivityResult:
    """Classify a typed failure as a connection test result."""
    if isinstance(error, LmsConfigurationError) and error.missing_attributes:
        return ConnectivityResult.of_missing_attributes(error.missing_attributes)
    return ConnectivityResult.of_error(error.error_type, str(error))


@dataclass(frozen=True)
class QuizQuery:
    """Parameters of one quiz listing call."""

    name_filter: str | None = None
    since: datetime | None = None
    sort: str | None = None
    page_number: int = 0
    page_size: int = 20

    def validate(self) -> None:
        """Raise ``InvalidQueryError`` when paging parameters are out of range."""
        if self.page_number < 0:
            raise InvalidQueryError(f"page_number must be >= 0, got {self.page_number}.")
        if self.page_size <= 0:
            raise InvalidQueryError(f"page_size must be > 0, got {self.page_size}.")


@dataclass(frozen=True)
class StoredAccessToken:
    """Encrypted access token as kept by an ``AccessTokenStore``."""

    ciphertext: str
    token_type: str
    expires_at: datetime | None
    stored_at: datetime


class CredentialVault(Protocol):
    """Encrypt/decrypt capability for secrets at rest."""

    def encrypt(self, plaintext: str) -> str:
        """Return ciphertext for plaintext."""
        ...

    def decrypt(self, ciphertext: str) -> str:
        """Return plaintext for ciphertext."""
        ...


class AccessTokenStore(Protocol):
    """Storage port for encrypted access tokens keyed by LMS setup id."""

    def load(self, lms_setup_id: str) -> StoredAccessToken | None:
        """Return stored token for setup if present."""
        ...

    def save(self, lms_setup_id: str, token: StoredAccessToken) -> None:
        """Persist token for setup, replacing any previous one."""
        ...

    def delete(self, lms_setup_id: str) -> None:
        """Delete stored token; no-op when absent."""
        ...


class LmsAdapter(Protocol):
    """Uniform contract implemented by every LMS backend adapter."""

    @property
    def lms_type(self) -> LmsType:
        """Return backend type served by this adapter."""
        ...

    @property
    def config(self) -> LmsConfig:
        """Return configuration this adapter is bound to."""
        ...

    def test_connection(self) -> ConnectivityResult:
        """Check configuration and credentials; never raises."""
        ...

    def get_quizzes(
        self,
        *,
        name_filter: str | None = None,
        since: datetime | None = None,
        sort: str | None = None,
        page_number: int = 0,
        page_size: int = 20,
    ) -> Result[Page[QuizData]]:
        """Return one canonical page of quizzes."""
        ...

    def get_quizzes_by_ids(self, ids: Iterable[str]) -> list[Result[QuizData]]:
        """Return one result per requested id, ordered by id."""
        ...

    def get_examinee_account_details(self, user_id: str) -> Result[AccountDetails]:
        """Return account details of one examinee."""
        ...

    def close(self) -> None:
        """Release owned resources."""
        ...

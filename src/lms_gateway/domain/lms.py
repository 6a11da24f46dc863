"""Domain models shared by every LMS backend adapter."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class LmsType(StrEnum):
    """Supported LMS backend types."""

    MOCK = "mock"
    OPEN_EDX = "open_edx"
    MOODLE = "moodle"


class LmsConfigAttribute(StrEnum):
    """Names of configuration attributes reported by connection tests."""

    LMS_TYPE = "lms_type"
    API_URL = "lms_api_url"
    CLIENT_NAME = "lms_client_name"
    CLIENT_SECRET = "lms_client_secret"


@dataclass(frozen=True)
class LmsConfig:
    """One configured LMS connection.

    ``client_secret`` holds credential-vault ciphertext. The plaintext secret is
    only produced inside a single token request and never stored here.
    """

    id: str
    lms_type: LmsType
    api_url: str
    client_name: str
    client_secret: str
    institution_id: str | None = None
    name: str | None = None

    def __repr__(self) -> str:
        return (
            f"LmsConfig(id={self.id!r}, lms_type={self.lms_type.value!r}, "
            f"api_url={self.api_url!r}, client_name={self.client_name!r}, "
            f"institution_id={self.institution_id!r})"
        )


@dataclass(frozen=True)
class AccessToken:
    """Credential issued by an LMS token endpoint."""

    value: str = field(repr=False)
    token_type: str = "Bearer"
    expires_at: datetime | None = None

    def is_expired(self, now: datetime, *, skew: timedelta = timedelta(0)) -> bool:
        """Return whether token expiry (minus skew) has passed."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at - skew

    def authorization_header(self) -> str:
        """Return ``Authorization`` header value for this token."""
        scheme = "JWT" if self.token_type.strip().lower() == "jwt" else "Bearer"
        return f"{scheme} {self.value}"


@dataclass(frozen=True)
class QuizData:
    """Canonical course/quiz metadata mapped from a backend payload."""

    id: str
    name: str
    description: str | None
    start_time: datetime | None
    end_time: datetime | None
    start_url: str
    lms_setup_id: str
    lms_type: LmsType
    institution_id: str | None = None


@dataclass(frozen=True)
class AccountDetails:
    """Examinee account information resolved from an LMS."""

    user_id: str
    username: str | None
    name: str | None
    email: str | None
    attributes: Mapping[str, str] = field(default_factory=dict)


class Page(Generic[T]):
    """Immutable page of results; ``page_size`` always equals ``len(content)``."""

    __slots__ = ("_content", "_number_of_pages", "_page_number", "_sort")

    def __init__(
        self,
        *,
        number_of_pages: int,
        page_number: int,
        sort: str | None,
        content: Sequence[T],
    ) -> None:
        self._number_of_pages = number_of_pages
        self._page_number = page_number
        self._sort = sort
        self._content: tuple[T, ...] = tuple(content)

    @property
    def number_of_pages(self) -> int:
        return self._number_of_pages

    @property
    def page_number(self) -> int:
        return self._page_number

    @property
    def sort(self) -> str | None:
        return self._sort

    @property
    def content(self) -> tuple[T, ...]:
        return self._content

    @property
    def page_size(self) -> int:
        return len(self._content)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Page):
            return NotImplemented
        return (
            self._number_of_pages == other._number_of_pages
            and self._page_number == other._page_number
            and self._sort == other._sort
            and self._content == other._content
        )

    def __hash__(self) -> int:
        return hash((self._number_of_pages, self._page_number, self._sort, self._content))

    def __repr__(self) -> str:
        return (
            f"Page(number_of_pages={self._number_of_pages}, page_number={self._page_number}, "
            f"page_size={self.page_size}, sort={self._sort!r})"
        )

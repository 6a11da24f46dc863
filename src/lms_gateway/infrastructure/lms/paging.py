"""Authenticated list requests and canonical page assembly."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx

from lms_gateway.application.lms import QuizQuery
from lms_gateway.domain.lms import AccessToken, LmsType, Page, QuizData
from lms_gateway.infrastructure.lms.errors import TokenRejectedError
from lms_gateway.infrastructure.lms.http import raise_for_status, read_json
from lms_gateway.infrastructure.lms.retry import RetryExecutor, RetryPolicy
from lms_gateway.infrastructure.lms.tokens import TokenManager

LOGGER = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)

SORT_KEYS: dict[str, Callable[[QuizData], tuple[bool, object]]] = {
    "name": lambda quiz: (False, quiz.name.lower()),
    "start_time": lambda quiz: (quiz.start_time is None, quiz.start_time or _EPOCH),
    "end_time": lambda quiz: (quiz.end_time is None, quiz.end_time or _EPOCH),
}


@dataclass(frozen=True)
class RequestAuth:
    """Headers and query parameters that carry a token on one request."""

    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UpstreamPage:
    """Mapped page content plus the page count reported by the upstream."""

    number_of_pages: int
    items: Sequence[QuizData]


def bearer_auth(token: AccessToken) -> RequestAuth:
    return RequestAuth(headers={"Authorization": token.authorization_header()})


def parse_timestamp(value: object) -> datetime | None:
    """Parse ISO-8601 strings or epoch seconds; anything else maps to None.

    Epoch ``0`` means "not set" on Moodle and maps to None as well.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        if value <= 0:
            return None
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


def apply_query(items: Iterable[QuizData], query: QuizQuery) -> list[QuizData]:
    """Filter by name and ``since``, then sort, as requested by query.

    ``since`` keeps quizzes that have not ended before it.
    """
    selected = list(items)
    if query.name_filter and query.name_filter.strip():
        needle = query.name_filter.strip().lower()
        selected = [quiz for quiz in selected if needle in quiz.name.lower()]
    if query.since is not None:
        since = parse_timestamp(query.since)
        if since is not None:
            selected = [
                quiz for quiz in selected if quiz.end_time is None or quiz.end_time >= since
            ]
    return sort_quizzes(selected, query.sort)


def sort_quizzes(items: Sequence[QuizData], sort: str | None) -> list[QuizData]:
    """Sort by ``name``, ``start_time`` or ``end_time``; ``-`` prefix reverses."""
    if not sort or not sort.strip():
        return list(items)
    normalized = sort.strip()
    descending = normalized.startswith("-")
    key_name = normalized.lstrip("+-")
    key = SORT_KEYS.get(key_name)
    if key is None:
        LOGGER.debug("event=lms_sort_ignored sort=%s", normalized)
        return list(items)
    return sorted(items, key=key, reverse=descending)


def slice_page(items: Sequence[QuizData], query: QuizQuery) -> UpstreamPage:
    """Cut one page out of a fully fetched, already filtered list."""
    number_of_pages = max(1, math.ceil(len(items) / query.page_size))
    start = query.page_number * query.page_size
    return UpstreamPage(
        number_of_pages=number_of_pages,
        items=list(items[start : start + query.page_size]),
    )


class QuizPageFetcher:
    """Issue token-authenticated GET requests and assemble canonical pages.

    A rejected token is discarded and the request repeated once with a new one.
    """

    def __init__(
        self,
        *,
        lms_type: LmsType,
        token_manager: TokenManager,
        http_client: httpx.Client,
        timeout_seconds: float,
        authorize: Callable[[AccessToken], RequestAuth] = bearer_auth,
        inspect_payload: Callable[[object], None] | None = None,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        self._lms_type = lms_type
        self._token_manager = token_manager
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds
        self._authorize = authorize
        self._inspect_payload = inspect_payload
        self._retry_executor = retry_executor or RetryExecutor(RetryPolicy())

    def get_json(self, url: str, *, params: Mapping[str, str] | None = None) -> object:
        """Return decoded JSON of an authenticated GET."""
        token = self._token_manager.ensure_token()
        try:
            return self._retry_executor.run(lambda: self._get_once(url, token, params))
        except TokenRejectedError:
            self._token_manager.invalidate(token)

        fresh_token = self._token_manager.ensure_token()
        return self._retry_executor.run(lambda: self._get_once(url, fresh_token, params))

    def fetch_page(
        self,
        url: str,
        query: QuizQuery,
        *,
        parse_page: Callable[[object, QuizQuery], UpstreamPage],
        params: Mapping[str, str] | None = None,
    ) -> Page[QuizData]:
        """Fetch one list page; page number and sort are echoed from query."""
        query.validate()
        payload = self.get_json(url, params=params)
        upstream = parse_page(payload, query)
        return Page(
            number_of_pages=upstream.number_of_pages,
            page_number=query.page_number,
            sort=query.sort,
            content=upstream.items,
        )

    def _get_once(
        self,
        url: str,
        token: AccessToken,
        params: Mapping[str, str] | None,
    ) -> object:
        auth = self._authorize(token)
        response = self._http_client.get(
            url,
            params={**(params or {}), **auth.params},
            headers={"Accept": "application/json", **auth.headers},
            timeout=self._timeout_seconds,
        )
        raise_for_status(self._lms_type, response)
        payload = read_json(response, lms_type=self._lms_type)
        if self._inspect_payload is not None:
            self._inspect_payload(payload)
        return payload

"""Open edX adapter: OAuth2 client credentials plus the course catalogue API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from lms_gateway.application.lms import (
    AccessTokenStore,
    CredentialVault,
    InvalidQueryError,
    QuizQuery,
)
from lms_gateway.application.result import Result
from lms_gateway.domain.lms import (
    AccessToken,
    AccountDetails,
    LmsConfig,
    LmsType,
    Page,
    QuizData,
)
from lms_gateway.infrastructure.lms.base import BaseLmsAdapter
from lms_gateway.infrastructure.lms.connection import ConnectionTester
from lms_gateway.infrastructure.lms.errors import TokenRejectedError, UpstreamResponseError
from lms_gateway.infrastructure.lms.http import join_url, raise_for_status
from lms_gateway.infrastructure.lms.paging import (
    QuizPageFetcher,
    UpstreamPage,
    apply_query,
    parse_timestamp,
)
from lms_gateway.infrastructure.lms.retry import RetryExecutor
from lms_gateway.infrastructure.lms.tokens import ClientCredentialsGrant, TokenManager

LOGGER = logging.getLogger(__name__)

OPEN_EDX_DEFAULT_TOKEN_REQUEST_PATH = "/oauth2/access_token"
OPEN_EDX_DEFAULT_COURSE_ENDPOINT = "/api/courses/v1/courses/"
OPEN_EDX_DEFAULT_COURSE_START_URL_PREFIX = "/courses/"
OPEN_EDX_ACCOUNTS_ENDPOINT = "/api/user/v1/accounts/"
OPEN_EDX_ME_ENDPOINT = "/api/user/v1/me"


class EdxCourse(BaseModel):
    """One entry of the course catalogue ``results`` array."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    course_id: str | None = None
    name: str | None = None
    short_description: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: object) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("short_description", "name", mode="before")
    @classmethod
    def _lenient_text(cls, value: object) -> str | None:
        if isinstance(value, str):
            return value
        return None


class EdxPage(BaseModel):
    """Paginated envelope returned by the course catalogue."""

    model_config = ConfigDict(extra="ignore")

    count: int | None = None
    num_pages: int | None = None
    next: object | None = None
    previous: object | None = None
    results: list[object] | None = None


class EdxAccount(BaseModel):
    """Subset of the Open edX user account resource."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    username: str | None = None
    name: str | None = None
    email: str | None = None


class OpenEdxLmsAdapter(BaseLmsAdapter):
    """Adapter for the Open edX course catalogue and user account APIs."""

    def __init__(
        self,
        config: LmsConfig,
        *,
        vault: CredentialVault,
        http_client: httpx.Client | None = None,
        token_store: AccessTokenStore | None = None,
        alternative_token_paths: Sequence[str] = (),
        timeout_seconds: float = 10.0,
        expiry_skew_seconds: float = 30.0,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        super().__init__(config)
        self._http_client = http_client or httpx.Client()
        self._owns_client = http_client is None
        self._timeout_seconds = timeout_seconds
        self._token_manager = TokenManager(
            config=config,
            http_client=self._http_client,
            vault=vault,
            grant=ClientCredentialsGrant(token_type="jwt"),
            default_token_path=OPEN_EDX_DEFAULT_TOKEN_REQUEST_PATH,
            alternative_token_paths=alternative_token_paths,
            token_store=token_store,
            probe=self._probe_token,
            timeout_seconds=timeout_seconds,
            expiry_skew_seconds=expiry_skew_seconds,
        )
        self._fetcher = QuizPageFetcher(
            lms_type=LmsType.OPEN_EDX,
            token_manager=self._token_manager,
            http_client=self._http_client,
            timeout_seconds=timeout_seconds,
            retry_executor=retry_executor,
        )

    @property
    def lms_type(self) -> LmsType:
        return LmsType.OPEN_EDX

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client:
            self._http_client.close()

    def _connection_tester(self) -> ConnectionTester:
        return ConnectionTester(
            expected_type=LmsType.OPEN_EDX,
            acquire_token=self._token_manager.ensure_token,
        )

    def _fetch_quizzes(self, query: QuizQuery) -> Page[QuizData]:
        return self._fetcher.fetch_page(
            join_url(self._config.api_url, OPEN_EDX_DEFAULT_COURSE_ENDPOINT),
            query,
            params={
                "page": str(query.page_number + 1),
                "page_size": str(query.page_size),
            },
            parse_page=self._parse_page,
        )

    def _fetch_quizzes_by_ids(self, ids: list[str]) -> list[Result[QuizData]]:
        return [
            Result.try_catch(lambda quiz_id=quiz_id: self._fetch_quiz(quiz_id))
            for quiz_id in ids
        ]

    def _fetch_quiz(self, quiz_id: str) -> QuizData:
        url = join_url(
            self._config.api_url,
            f"{OPEN_EDX_DEFAULT_COURSE_ENDPOINT}{quote(quiz_id, safe=':+')}/",
        )
        payload = self._fetcher.get_json(url)
        quiz = self._quiz_from_item(payload)
        if quiz is None:
            raise UpstreamResponseError(f"open_edx returned no usable course for id {quiz_id}.")
        return quiz

    def _fetch_account_details(self, user_id: str) -> AccountDetails:
        if not user_id.strip():
            raise InvalidQueryError("user_id must not be blank.")
        url = join_url(
            self._config.api_url,
            f"{OPEN_EDX_ACCOUNTS_ENDPOINT}{quote(user_id.strip(), safe='')}",
        )
        payload = self._fetcher.get_json(url)
        try:
            account = EdxAccount.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamResponseError("open_edx account payload has unexpected shape.") from exc

        extra = account.model_extra or {}
        attributes = {
            key: value
            for key, value in extra.items()
            if isinstance(value, str) and value.strip()
        }
        return AccountDetails(
            user_id=user_id.strip(),
            username=account.username,
            name=account.name,
            email=account.email,
            attributes=attributes,
        )

    def _parse_page(self, payload: object, query: QuizQuery) -> UpstreamPage:
        try:
            envelope = EdxPage.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamResponseError("open_edx course page has unexpected shape.") from exc

        quizzes: list[QuizData] = []
        for item in envelope.results or []:
            quiz = self._quiz_from_item(item)
            if quiz is not None:
                quizzes.append(quiz)

        return UpstreamPage(
            number_of_pages=envelope.num_pages if envelope.num_pages is not None else 1,
            items=apply_query(quizzes, query),
        )

    def _quiz_from_item(self, item: object) -> QuizData | None:
        try:
            course = EdxCourse.model_validate(item)
        except ValidationError:
            LOGGER.warning(
                "event=lms_course_item_skipped lms_setup_id=%s lms_type=%s reason=invalid_shape",
                self._config.id,
                LmsType.OPEN_EDX.value,
            )
            return None

        course_id = course.id or course.course_id
        if not course_id:
            LOGGER.warning(
                "event=lms_course_item_skipped lms_setup_id=%s lms_type=%s reason=missing_id",
                self._config.id,
                LmsType.OPEN_EDX.value,
            )
            return None

        return QuizData(
            id=course_id,
            name=course.name or course_id,
            description=course.short_description,
            start_time=course.start,
            end_time=course.end,
            start_url=join_url(
                self._config.api_url,
                f"{OPEN_EDX_DEFAULT_COURSE_START_URL_PREFIX}{course_id}",
            ),
            lms_setup_id=self._config.id,
            lms_type=LmsType.OPEN_EDX,
            institution_id=self._config.institution_id,
        )

    def _probe_token(self, token: AccessToken) -> bool:
        response = self._http_client.get(
            join_url(self._config.api_url, OPEN_EDX_ME_ENDPOINT),
            headers={"Authorization": token.authorization_header(), "Accept": "application/json"},
            timeout=self._timeout_seconds,
        )
        try:
            raise_for_status(LmsType.OPEN_EDX, response)
        except TokenRejectedError:
            return False
        return True

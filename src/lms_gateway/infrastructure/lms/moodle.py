"""Moodle adapter: web service token plus the REST function endpoint."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

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
from lms_gateway.infrastructure.lms.config import DEFAULT_MOODLE_SERVICE
from lms_gateway.infrastructure.lms.connection import ConnectionTester
from lms_gateway.infrastructure.lms.errors import (
    TokenEndpointError,
    TokenRejectedError,
    UpstreamRequestError,
    UpstreamResponseError,
    UpstreamRestrictionError,
)
from lms_gateway.infrastructure.lms.http import (
    extract_error_detail,
    join_url,
    normalize_json_object,
    raise_for_status,
    read_json,
)
from lms_gateway.infrastructure.lms.paging import (
    QuizPageFetcher,
    RequestAuth,
    UpstreamPage,
    apply_query,
    parse_timestamp,
    slice_page,
)
from lms_gateway.infrastructure.lms.retry import RetryExecutor
from lms_gateway.infrastructure.lms.tokens import TokenManager

LOGGER = logging.getLogger(__name__)

MOODLE_DEFAULT_TOKEN_REQUEST_PATH = "/login/token.php"
MOODLE_REST_ENDPOINT = "/webservice/rest/server.php"
MOODLE_COURSE_START_URL_PREFIX = "/course/view.php?id="
MOODLE_COURSES_FUNCTION = "core_course_get_courses_by_field"
MOODLE_USERS_FUNCTION = "core_user_get_users_by_field"
MOODLE_SITE_INFO_FUNCTION = "core_webservice_get_site_info"

_TOKEN_REJECTED_CODES = frozenset({"invalidtoken", "invalidtokenexception"})
_RESTRICTED_CODES = frozenset(
    {"accessexception", "nopermissions", "requireloginerror", "servicenotavailable"}
)


class MoodleCourse(BaseModel):
    """One course of ``core_course_get_courses_by_field``."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    fullname: str | None = None
    shortname: str | None = None
    summary: str | None = None
    startdate: datetime | None = None
    enddate: datetime | None = None
    format: str | None = None

    @field_validator("startdate", "enddate", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: object) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("fullname", "shortname", "summary", "format", mode="before")
    @classmethod
    def _lenient_text(cls, value: object) -> str | None:
        if isinstance(value, str):
            return value
        return None


class MoodleUser(BaseModel):
    """One user of ``core_user_get_users_by_field``."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    username: str | None = None
    fullname: str | None = None
    email: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    idnumber: str | None = None
    institution: str | None = None
    department: str | None = None


class MoodleTokenGrant:
    """Moodle ``login/token.php`` request with service name."""

    def __init__(self, *, service: str = DEFAULT_MOODLE_SERVICE) -> None:
        self._service = service

    def request_token(
        self,
        http_client: httpx.Client,
        url: str,
        *,
        client_name: str,
        client_secret: str,
        timeout_seconds: float,
        issued_at: datetime,
    ) -> AccessToken:
        response = http_client.post(
            url,
            data={
                "username": client_name,
                "password": client_secret,
                "service": self._service,
            },
            headers={"Accept": "application/json"},
            timeout=timeout_seconds,
        )
        if response.status_code >= 400:
            message = f"token endpoint answered status={response.status_code}."
            detail = extract_error_detail(response)
            if detail:
                message = f"{message} detail={detail}"
            raise TokenEndpointError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenEndpointError("token endpoint returned invalid JSON payload.") from exc
        if not isinstance(payload, dict):
            raise TokenEndpointError("token endpoint response root must be a JSON object.")
        payload_obj = normalize_json_object(payload)
        token = payload_obj.get("token")
        if not isinstance(token, str) or not token.strip():
            errorcode = payload_obj.get("errorcode")
            raise TokenEndpointError(
                f"token endpoint issued no token. errorcode={errorcode or '-'}"
            )
        return AccessToken(value=token, token_type="moodle")


def inspect_moodle_payload(payload: object) -> None:
    """Raise typed errors for Moodle exception payloads delivered with HTTP 200."""
    if not isinstance(payload, dict):
        return
    payload_obj = normalize_json_object(payload)
    if "exception" not in payload_obj and "errorcode" not in payload_obj:
        return

    errorcode = str(payload_obj.get("errorcode") or "").strip().lower()
    message = f"moodle web service error. errorcode={errorcode or '-'}"
    detail = payload_obj.get("message")
    if isinstance(detail, str) and detail.strip():
        message = f"{message} detail={detail.strip()[:300]}"
    if errorcode in _TOKEN_REJECTED_CODES:
        raise TokenRejectedError(message)
    if errorcode in _RESTRICTED_CODES:
        raise UpstreamRestrictionError(message)
    raise UpstreamRequestError(message)


def moodle_token_auth(token: AccessToken) -> RequestAuth:
    return RequestAuth(params={"wstoken": token.value, "moodlewsrestformat": "json"})


class MoodleLmsAdapter(BaseLmsAdapter):
    """Adapter for Moodle web services.

    Moodle lists courses without paging, so filtering, sorting and paging are
    applied to the full course list.
    """

    def __init__(
        self,
        config: LmsConfig,
        *,
        vault: CredentialVault,
        http_client: httpx.Client | None = None,
        token_store: AccessTokenStore | None = None,
        alternative_token_paths: Sequence[str] = (),
        service: str = DEFAULT_MOODLE_SERVICE,
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
            grant=MoodleTokenGrant(service=service),
            default_token_path=MOODLE_DEFAULT_TOKEN_REQUEST_PATH,
            alternative_token_paths=alternative_token_paths,
            token_store=token_store,
            probe=self._probe_token,
            timeout_seconds=timeout_seconds,
            expiry_skew_seconds=expiry_skew_seconds,
        )
        self._fetcher = QuizPageFetcher(
            lms_type=LmsType.MOODLE,
            token_manager=self._token_manager,
            http_client=self._http_client,
            timeout_seconds=timeout_seconds,
            authorize=moodle_token_auth,
            inspect_payload=inspect_moodle_payload,
            retry_executor=retry_executor,
        )

    @property
    def lms_type(self) -> LmsType:
        return LmsType.MOODLE

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client:
            self._http_client.close()

    def _connection_tester(self) -> ConnectionTester:
        return ConnectionTester(
            expected_type=LmsType.MOODLE,
            acquire_token=self._token_manager.ensure_token,
        )

    def _rest_url(self) -> str:
        return join_url(self._config.api_url, MOODLE_REST_ENDPOINT)

    def _fetch_quizzes(self, query: QuizQuery) -> Page[QuizData]:
        return self._fetcher.fetch_page(
            self._rest_url(),
            query,
            params={"wsfunction": MOODLE_COURSES_FUNCTION},
            parse_page=self._parse_page,
        )

    def _fetch_quizzes_by_ids(self, ids: list[str]) -> list[Result[QuizData]]:
        invalid = [quiz_id for quiz_id in ids if not quiz_id.strip().isdecimal()]
        # Moodle echoes ids without leading zeros.
        normalized = {quiz_id: str(int(quiz_id)) for quiz_id in ids if quiz_id not in invalid}
        numeric_ids = list(dict.fromkeys(normalized.values()))

        by_id: dict[str, QuizData] = {}
        batch_error: Result[QuizData] | None = None
        if numeric_ids:
            batch = Result.try_catch(lambda: self._fetch_courses_by_ids(numeric_ids))
            if batch.error is not None:
                batch_error = Result.of_error(batch.error)
            else:
                by_id = {quiz.id: quiz for quiz in batch.value}

        results: list[Result[QuizData]] = []
        for quiz_id in ids:
            if quiz_id in invalid:
                error = InvalidQueryError(f"moodle course id must be numeric: {quiz_id!r}")
                results.append(Result.of_error(error))
            elif batch_error is not None:
                results.append(batch_error)
            elif normalized[quiz_id] in by_id:
                results.append(Result.of(by_id[normalized[quiz_id]]))
            else:
                results.append(
                    Result.of_error(UpstreamRequestError(f"moodle course {quiz_id} not found."))
                )
        return results

    def _fetch_courses_by_ids(self, ids: list[str]) -> list[QuizData]:
        payload = self._fetcher.get_json(
            self._rest_url(),
            params={
                "wsfunction": MOODLE_COURSES_FUNCTION,
                "field": "ids",
                "value": ",".join(ids),
            },
        )
        return self._courses_of(payload)

    def _fetch_account_details(self, user_id: str) -> AccountDetails:
        if not user_id.strip():
            raise InvalidQueryError("user_id must not be blank.")
        payload = self._fetcher.get_json(
            self._rest_url(),
            params={
                "wsfunction": MOODLE_USERS_FUNCTION,
                "field": "id",
                "values[0]": user_id.strip(),
            },
        )
        if not isinstance(payload, list):
            raise UpstreamResponseError("moodle user payload must be a JSON array.")
        users: list[MoodleUser] = []
        for item in payload:
            try:
                users.append(MoodleUser.model_validate(item))
            except ValidationError:
                continue
        if not users:
            raise UpstreamRequestError(f"moodle user {user_id} not found.")

        user = users[0]
        attributes = {
            key: value
            for key, value in (
                ("firstname", user.firstname),
                ("lastname", user.lastname),
                ("idnumber", user.idnumber),
                ("institution", user.institution),
                ("department", user.department),
            )
            if value
        }
        return AccountDetails(
            user_id=user.id or user_id.strip(),
            username=user.username,
            name=user.fullname,
            email=user.email,
            attributes=attributes,
        )

    def _parse_page(self, payload: object, query: QuizQuery) -> UpstreamPage:
        return slice_page(apply_query(self._courses_of(payload), query), query)

    def _courses_of(self, payload: object) -> list[QuizData]:
        if not isinstance(payload, dict):
            raise UpstreamResponseError("moodle course payload must be a JSON object.")
        courses = normalize_json_object(payload).get("courses")
        if not isinstance(courses, list):
            raise UpstreamResponseError("moodle course payload is missing courses array.")

        quizzes: list[QuizData] = []
        for item in courses:
            quiz = self._quiz_from_item(item)
            if quiz is not None:
                quizzes.append(quiz)
        return quizzes

    def _quiz_from_item(self, item: object) -> QuizData | None:
        try:
            course = MoodleCourse.model_validate(item)
        except ValidationError:
            LOGGER.warning(
                "event=lms_course_item_skipped lms_setup_id=%s lms_type=%s reason=invalid_shape",
                self._config.id,
                LmsType.MOODLE.value,
            )
            return None
        if not course.id:
            LOGGER.warning(
                "event=lms_course_item_skipped lms_setup_id=%s lms_type=%s reason=missing_id",
                self._config.id,
                LmsType.MOODLE.value,
            )
            return None
        if course.format == "site":
            return None

        return QuizData(
            id=course.id,
            name=course.fullname or course.shortname or course.id,
            description=course.summary or None,
            start_time=course.startdate,
            end_time=course.enddate,
            start_url=join_url(
                self._config.api_url,
                f"{MOODLE_COURSE_START_URL_PREFIX}{course.id}",
            ),
            lms_setup_id=self._config.id,
            lms_type=LmsType.MOODLE,
            institution_id=self._config.institution_id,
        )

    def _probe_token(self, token: AccessToken) -> bool:
        auth = moodle_token_auth(token)
        response = self._http_client.get(
            self._rest_url(),
            params={"wsfunction": MOODLE_SITE_INFO_FUNCTION, **auth.params},
            timeout=self._timeout_seconds,
        )
        try:
            raise_for_status(LmsType.MOODLE, response)
            inspect_moodle_payload(read_json(response, lms_type=LmsType.MOODLE))
        except TokenRejectedError:
            return False
        return True

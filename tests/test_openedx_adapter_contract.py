"""Contract tests for the Open edX adapter with mocked transport."""

from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import parse_qs

import httpx

from lms_gateway.application.in_memory_token_store import InMemoryAccessTokenStore
from lms_gateway.application.lms import (
    InvalidQueryError,
    LmsConfigurationError,
    QuizAccessError,
    QuizRestrictionError,
    TokenRequestError,
)
from lms_gateway.domain.connectivity import ErrorType
from lms_gateway.domain.lms import LmsType
from lms_gateway.infrastructure.lms.openedx import OpenEdxLmsAdapter
from lms_gateway.infrastructure.lms.retry import RetryExecutor, RetryPolicy
from tests.lms_fixture_utils import TEST_VAULT, make_config, no_wait_retry

COURSES_PATH = "/api/courses/v1/courses/"


def _token_response(request: httpx.Request, token: str = "tok-1") -> httpx.Response:
    form = parse_qs(request.content.decode("utf-8"))
    assert form["grant_type"] == ["client_credentials"]
    assert form["client_id"] == ["exam-client"]
    assert form["client_secret"] == ["client-secret"]
    assert form["token_type"] == ["jwt"]
    return httpx.Response(
        status_code=200,
        json={"access_token": token, "token_type": "JWT", "expires_in": 3600},
    )


def _course(course_id: str, name: str, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": course_id,
        "name": name,
        "short_description": f"{name} description",
        "start": "2026-03-01T08:00:00Z",
        "end": "2026-06-30T18:00:00Z",
    }
    payload.update(extra)
    return payload


def _adapter(handler, **kwargs: object) -> tuple[OpenEdxLmsAdapter, httpx.Client]:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OpenEdxLmsAdapter(
        make_config(LmsType.OPEN_EDX),
        vault=TEST_VAULT,
        http_client=http_client,
        retry_executor=no_wait_retry(),
        **kwargs,  # type: ignore[arg-type]
    )
    return adapter, http_client


def test_get_quizzes_maps_single_item_envelope_into_page() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        assert request.url.path == COURSES_PATH
        return httpx.Response(
            status_code=200,
            json={
                "count": 1,
                "num_pages": 1,
                "next": None,
                "previous": None,
                "results": [_course("course-v1:ETH+X1+2026", "Exam Prep")],
            },
        )

    adapter, http_client = _adapter(handler)
    try:
        result = adapter.get_quizzes()
    finally:
        http_client.close()

    assert not result.has_error
    page = result.value
    assert page.number_of_pages == 1
    assert page.page_number == 0
    assert page.page_size == 1
    quiz = page.content[0]
    assert quiz.id == "course-v1:ETH+X1+2026"
    assert quiz.name == "Exam Prep"
    assert quiz.description == "Exam Prep description"
    assert quiz.start_time == datetime(2026, 3, 1, 8, 0, tzinfo=UTC)
    assert quiz.end_time == datetime(2026, 6, 30, 18, 0, tzinfo=UTC)
    assert quiz.start_url == "https://lms.example.org/courses/course-v1:ETH+X1+2026"
    assert quiz.lms_setup_id == "setup-1"
    assert quiz.lms_type is LmsType.OPEN_EDX
    assert quiz.institution_id == "inst-1"

    list_request = captured[-1]
    assert list_request.headers["authorization"] == "JWT tok-1"
    assert list_request.url.params["page"] == "1"
    assert list_request.url.params["page_size"] == "20"


def test_get_quizzes_forwards_paging_and_filters_page_by_name_and_sort() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        assert request.url.params["page"] == "3"
        assert request.url.params["page_size"] == "5"
        return httpx.Response(
            status_code=200,
            json={
                "num_pages": 4,
                "results": [
                    _course("c1", "Physics Final"),
                    _course("c2", "Chemistry Midterm"),
                    _course("c3", "Algebra Final"),
                ],
            },
        )

    adapter, http_client = _adapter(handler)
    try:
        result = adapter.get_quizzes(name_filter="final", sort="name", page_number=2, page_size=5)
    finally:
        http_client.close()

    page = result.value
    assert page.number_of_pages == 4
    assert page.page_number == 2
    assert page.sort == "name"
    assert [quiz.id for quiz in page.content] == ["c3", "c1"]
    assert page.page_size == 2


def test_items_without_id_are_skipped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        return httpx.Response(
            status_code=200,
            json={"results": [{"name": "No Id"}, "garbage", _course("c1", "Kept")]},
        )

    adapter, http_client = _adapter(handler)
    try:
        page = adapter.get_quizzes().value
    finally:
        http_client.close()

    assert [quiz.id for quiz in page.content] == ["c1"]
    assert page.number_of_pages == 1


def test_rejected_token_is_replaced_and_request_repeated_once() -> None:
    token_requests: list[str] = []
    list_auth: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            token_requests.append("token")
            return _token_response(request, token=f"tok-{len(token_requests)}")
        list_auth.append(request.headers["authorization"])
        if request.headers["authorization"] == "JWT tok-1":
            return httpx.Response(status_code=401, json={"detail": "expired"})
        return httpx.Response(status_code=200, json={"results": [_course("c1", "Quiz")]})

    adapter, http_client = _adapter(handler)
    try:
        result = adapter.get_quizzes()
    finally:
        http_client.close()

    assert not result.has_error
    assert token_requests == ["token", "token"]
    assert list_auth == ["JWT tok-1", "JWT tok-2"]


def test_forbidden_listing_is_restriction_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        return httpx.Response(status_code=403, json={"detail": "not allowed"})

    adapter, http_client = _adapter(handler)
    try:
        result = adapter.get_quizzes()
    finally:
        http_client.close()

    assert isinstance(result.error, QuizRestrictionError)
    assert "not allowed" in str(result.error)


def test_server_error_is_retried_then_reported_as_access_error() -> None:
    list_calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        list_calls.append(1)
        return httpx.Response(status_code=502, text="bad gateway")

    adapter, http_client = _adapter(handler)
    try:
        result = adapter.get_quizzes()
    finally:
        http_client.close()

    assert isinstance(result.error, QuizAccessError)
    assert len(list_calls) == 2


def test_transport_failure_becomes_access_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        raise httpx.ConnectError("connection refused", request=request)

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OpenEdxLmsAdapter(
        make_config(LmsType.OPEN_EDX),
        vault=TEST_VAULT,
        http_client=http_client,
        retry_executor=RetryExecutor(RetryPolicy(max_attempts=1)),
    )
    try:
        result = adapter.get_quizzes()
    finally:
        http_client.close()

    assert isinstance(result.error, QuizAccessError)


def test_invalid_paging_is_rejected_without_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    adapter, http_client = _adapter(handler)
    try:
        negative_page = adapter.get_quizzes(page_number=-1)
        zero_size = adapter.get_quizzes(page_size=0)
    finally:
        http_client.close()

    assert isinstance(negative_page.error, InvalidQueryError)
    assert isinstance(zero_size.error, InvalidQueryError)


def test_incomplete_config_fails_every_call_without_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OpenEdxLmsAdapter(
        make_config(LmsType.OPEN_EDX, client_name=""),
        vault=TEST_VAULT,
        http_client=http_client,
    )
    try:
        listing = adapter.get_quizzes()
        by_ids = adapter.get_quizzes_by_ids(["a", "b"])
    finally:
        http_client.close()

    assert isinstance(listing.error, LmsConfigurationError)
    assert len(by_ids) == 2
    assert all(isinstance(result.error, LmsConfigurationError) for result in by_ids)


def test_malformed_api_url_is_token_request_error_on_every_call() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OpenEdxLmsAdapter(
        make_config(LmsType.OPEN_EDX, api_url="https://lms.example.org:abc"),
        vault=TEST_VAULT,
        http_client=http_client,
        alternative_token_paths=("/alt/token",),
        retry_executor=no_wait_retry(),
    )
    try:
        listing = adapter.get_quizzes()
        by_ids = adapter.get_quizzes_by_ids(["course-v1:X+Y+Z"])
        account = adapter.get_examinee_account_details("42")
    finally:
        http_client.close()

    assert isinstance(listing.error, TokenRequestError)
    assert listing.error.error_type is ErrorType.TOKEN_REQUEST
    assert listing.error.attempted_paths == ("/oauth2/access_token", "/alt/token")
    assert isinstance(by_ids[0].error, TokenRequestError)
    assert isinstance(account.error, TokenRequestError)


def test_get_quizzes_by_ids_returns_one_result_per_id_in_id_order() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        if request.url.path == f"{COURSES_PATH}course-b/":
            return httpx.Response(status_code=200, json=_course("course-b", "B"))
        return httpx.Response(status_code=404, json={"detail": "unknown course"})

    adapter, http_client = _adapter(handler)
    try:
        results = adapter.get_quizzes_by_ids(["course-z", "course-b", "course-b"])
    finally:
        http_client.close()

    assert len(results) == 2
    assert results[0].value.id == "course-b"
    assert isinstance(results[1].error, QuizAccessError)
    assert "unknown course" in str(results[1].error)


def test_account_details_map_known_and_extra_fields() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return _token_response(request)
        assert request.url.path == "/api/user/v1/accounts/jdoe"
        return httpx.Response(
            status_code=200,
            json={
                "username": "jdoe",
                "name": "Jane Doe",
                "email": "jane@example.org",
                "country": "CH",
                "is_active": True,
                "bio": "",
            },
        )

    adapter, http_client = _adapter(handler)
    try:
        result = adapter.get_examinee_account_details("jdoe")
    finally:
        http_client.close()

    account = result.value
    assert account.user_id == "jdoe"
    assert account.username == "jdoe"
    assert account.name == "Jane Doe"
    assert account.email == "jane@example.org"
    assert dict(account.attributes) == {"country": "CH"}


def test_persisted_token_is_probed_and_reused_by_new_adapter() -> None:
    store = InMemoryAccessTokenStore()
    token_requests: list[str] = []
    probes: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            token_requests.append("token")
            return _token_response(request)
        if request.url.path == "/api/user/v1/me":
            probes.append(request.headers["authorization"])
            return httpx.Response(status_code=200, json={"username": "exam-client"})
        return httpx.Response(status_code=200, json={"results": []})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    config = make_config(LmsType.OPEN_EDX)
    try:
        first = OpenEdxLmsAdapter(
            config, vault=TEST_VAULT, http_client=http_client, token_store=store
        )
        assert first.test_connection().is_ok()
        second = OpenEdxLmsAdapter(
            config, vault=TEST_VAULT, http_client=http_client, token_store=store
        )
        assert not second.get_quizzes().has_error
    finally:
        http_client.close()

    assert token_requests == ["token"]
    assert probes == ["JWT tok-1"]

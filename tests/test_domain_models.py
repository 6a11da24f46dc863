"""Unit tests for shared LMS domain models and the result wrapper."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from lms_gateway.application.lms import QuizAccessError, TokenRequestError
from lms_gateway.application.result import Result
from lms_gateway.domain.lms import AccessToken, LmsConfig, LmsType, Page, QuizData


def _quiz(quiz_id: str) -> QuizData:
    return QuizData(
        id=quiz_id,
        name=f"Quiz {quiz_id}",
        description=None,
        start_time=None,
        end_time=None,
        start_url=f"https://lms.example.org/courses/{quiz_id}",
        lms_setup_id="setup-1",
        lms_type=LmsType.MOCK,
    )


def test_page_size_always_equals_content_length() -> None:
    page = Page(number_of_pages=3, page_number=1, sort="name", content=[_quiz("a"), _quiz("b")])
    empty = Page(number_of_pages=1, page_number=0, sort=None, content=[])

    assert page.page_size == 2
    assert page.content == (_quiz("a"), _quiz("b"))
    assert empty.page_size == 0


def test_page_content_is_detached_from_input_list() -> None:
    items = [_quiz("a")]
    page = Page(number_of_pages=1, page_number=0, sort=None, content=items)

    items.append(_quiz("b"))

    assert page.page_size == 1


def test_access_token_expiry_respects_skew() -> None:
    now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    token = AccessToken(value="t", expires_at=now + timedelta(seconds=20))

    assert not token.is_expired(now)
    assert token.is_expired(now, skew=timedelta(seconds=30))
    assert not AccessToken(value="t").is_expired(now)


def test_access_token_authorization_header_uses_scheme_by_type() -> None:
    assert AccessToken(value="abc", token_type="jwt").authorization_header() == "JWT abc"
    assert AccessToken(value="abc").authorization_header() == "Bearer abc"


def test_config_and_token_repr_hide_secrets() -> None:
    config = LmsConfig(
        id="s1",
        lms_type=LmsType.OPEN_EDX,
        api_url="https://lms.example.org",
        client_name="client",
        client_secret="ciphertext-value",
    )

    assert "ciphertext-value" not in repr(config)
    assert "hidden-token" not in repr(AccessToken(value="hidden-token"))


def test_result_try_catch_wraps_transport_errors() -> None:
    def failing() -> int:
        raise httpx.ConnectError("refused")

    result = Result.try_catch(failing)

    assert result.has_error
    assert isinstance(result.error, QuizAccessError)
    assert isinstance(result.error.__cause__, httpx.ConnectError)


def test_result_try_catch_wraps_unexpected_errors() -> None:
    def failing() -> int:
        raise RuntimeError("Cannot send a request, as the client has been closed.")

    result = Result.try_catch(failing)

    assert isinstance(result.error, QuizAccessError)
    assert "RuntimeError" in str(result.error)
    assert isinstance(result.error.__cause__, RuntimeError)


def test_result_map_and_get_or() -> None:
    ok = Result.of(2).map(lambda value: value * 10)
    failed: Result[int] = Result.of_error(TokenRequestError("nope"))

    assert ok.value == 20
    assert failed.map(lambda value: value * 10).error is failed.error
    assert failed.get_or(7) == 7
    with pytest.raises(TokenRequestError):
        failed.get_or_raise()

"""In-process LMS backend serving a fixed quiz catalogue."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import UTC, datetime

from lms_gateway.application.lms import InvalidQueryError, QuizAccessError, QuizQuery
from lms_gateway.application.result import Result
from lms_gateway.domain.lms import AccountDetails, LmsConfig, LmsType, Page, QuizData
from lms_gateway.infrastructure.lms.base import BaseLmsAdapter
from lms_gateway.infrastructure.lms.connection import ConnectionTester
from lms_gateway.infrastructure.lms.http import join_url
from lms_gateway.infrastructure.lms.paging import apply_query, slice_page

_DEMO_CATALOGUE = (
    ("quiz1", "Demo Quiz 1", "2020-01-01T09:00:00", "2021-01-01T09:00:00"),
    ("quiz2", "Demo Quiz 2", "2020-01-01T09:00:00", "2021-01-01T09:00:00"),
    ("quiz3", "Demo Quiz 3", "2018-07-30T09:00:00", "2018-08-01T00:00:00"),
    ("quiz4", "Demo Quiz 4", "2018-01-01T00:00:00", "2019-01-01T00:00:00"),
    ("quiz5", "Demo Quiz 5", "2018-01-01T09:00:00", "2021-01-01T09:00:00"),
    ("quiz6", "Demo Quiz 6", "2018-01-01T09:00:00", None),
)


def demo_quizzes(config: LmsConfig) -> list[QuizData]:
    """Build the demo catalogue bound to one setup."""
    quizzes: list[QuizData] = []
    for quiz_id, name, start, end in _DEMO_CATALOGUE:
        quizzes.append(
            QuizData(
                id=quiz_id,
                name=name,
                description=f"{name} description",
                start_time=datetime.fromisoformat(start).replace(tzinfo=UTC),
                end_time=datetime.fromisoformat(end).replace(tzinfo=UTC) if end else None,
                start_url=join_url(config.api_url, f"/{quiz_id}") if config.api_url else "",
                lms_setup_id=config.id,
                lms_type=LmsType.MOCK,
                institution_id=config.institution_id,
            )
        )
    return quizzes


class MockLmsAdapter(BaseLmsAdapter):
    """Adapter without network access, for demos and integration tests."""

    def __init__(
        self,
        config: LmsConfig,
        *,
        quizzes: Iterable[QuizData] | None = None,
        accounts: Mapping[str, AccountDetails] | None = None,
    ) -> None:
        super().__init__(config)
        catalogue = demo_quizzes(config) if quizzes is None else list(quizzes)
        self._quizzes = [
            replace(quiz, lms_setup_id=config.id, lms_type=LmsType.MOCK) for quiz in catalogue
        ]
        self._accounts = dict(accounts or {})

    @property
    def lms_type(self) -> LmsType:
        return LmsType.MOCK

    def _connection_tester(self) -> ConnectionTester:
        return ConnectionTester(expected_type=LmsType.MOCK)

    def _fetch_quizzes(self, query: QuizQuery) -> Page[QuizData]:
        upstream = slice_page(apply_query(self._quizzes, query), query)
        return Page(
            number_of_pages=upstream.number_of_pages,
            page_number=query.page_number,
            sort=query.sort,
            content=upstream.items,
        )

    def _fetch_quizzes_by_ids(self, ids: list[str]) -> list[Result[QuizData]]:
        by_id = {quiz.id: quiz for quiz in self._quizzes}
        results: list[Result[QuizData]] = []
        for quiz_id in ids:
            quiz = by_id.get(quiz_id)
            if quiz is None:
                results.append(Result.of_error(QuizAccessError(f"mock quiz {quiz_id} not found.")))
            else:
                results.append(Result.of(quiz))
        return results

    def _fetch_account_details(self, user_id: str) -> AccountDetails:
        if not user_id.strip():
            raise InvalidQueryError("user_id must not be blank.")
        account = self._accounts.get(user_id.strip())
        if account is not None:
            return account
        return AccountDetails(
            user_id=user_id.strip(),
            username=user_id.strip(),
            name=f"Examinee {user_id.strip()}",
            email=None,
            attributes={},
        )

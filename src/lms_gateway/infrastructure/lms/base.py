"""Shared boundary behaviour of LMS adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from lms_gateway.application.lms import LmsAdapter, LmsConfigurationError, QuizQuery
from lms_gateway.application.result import Result
from lms_gateway.domain.connectivity import ConnectivityResult
from lms_gateway.domain.lms import (
    AccountDetails,
    LmsConfig,
    LmsConfigAttribute,
    LmsType,
    Page,
    QuizData,
)
from lms_gateway.infrastructure.lms.connection import ConnectionTester, missing_attributes

LOGGER = logging.getLogger(__name__)


class BaseLmsAdapter(LmsAdapter, ABC):
    """Convert backend calls into ``Result`` values at the adapter boundary."""

    def __init__(self, config: LmsConfig) -> None:
        self._config = config

    @property
    @abstractmethod
    def lms_type(self) -> LmsType:
        """Return backend type served by this adapter."""

    @property
    def config(self) -> LmsConfig:
        return self._config

    def test_connection(self) -> ConnectivityResult:
        return self._connection_tester().test(self._config)

    def get_quizzes(
        self,
        *,
        name_filter: str | None = None,
        since: datetime | None = None,
        sort: str | None = None,
        page_number: int = 0,
        page_size: int = 20,
    ) -> Result[Page[QuizData]]:
        query = QuizQuery(
            name_filter=name_filter,
            since=since,
            sort=sort,
            page_number=page_number,
            page_size=page_size,
        )

        def operation() -> Page[QuizData]:
            query.validate()
            self._require_usable_config()
            return self._fetch_quizzes(query)

        result = Result.try_catch(operation)
        self._log_failure("get_quizzes", result)
        return result

    def get_quizzes_by_ids(self, ids: Iterable[str]) -> list[Result[QuizData]]:
        requested = sorted(set(ids))
        if not requested:
            return []
        try:
            self._require_usable_config()
        except LmsConfigurationError as exc:
            return [Result.of_error(exc) for _ in requested]
        return self._fetch_quizzes_by_ids(requested)

    def get_examinee_account_details(self, user_id: str) -> Result[AccountDetails]:
        def operation() -> AccountDetails:
            self._require_usable_config()
            return self._fetch_account_details(user_id)

        result = Result.try_catch(operation)
        self._log_failure("get_examinee_account_details", result)
        return result

    def close(self) -> None:
        """Release owned resources."""

    def _require_usable_config(self) -> None:
        if self._config.lms_type is not self.lms_type:
            raise LmsConfigurationError(
                f"LMS setup {self._config.id} is of type {self._config.lms_type.value}, "
                f"not {self.lms_type.value}.",
                missing_attributes=[LmsConfigAttribute.LMS_TYPE],
            )
        missing = missing_attributes(self._config)
        if missing:
            raise LmsConfigurationError(
                f"LMS setup {self._config.id} is missing required attributes.",
                missing_attributes=missing,
            )

    def _log_failure(self, operation: str, result: Result[object]) -> None:
        if result.error is None:
            return
        LOGGER.warning(
            "event=lms_call_failed operation=%s lms_setup_id=%s lms_type=%s error_type=%s kind=%s",
            operation,
            self._config.id,
            self.lms_type.value,
            result.error.__class__.__name__,
            result.error.error_type.value,
        )

    @abstractmethod
    def _connection_tester(self) -> ConnectionTester:
        """Return tester wired to this adapter's token acquisition."""

    @abstractmethod
    def _fetch_quizzes(self, query: QuizQuery) -> Page[QuizData]:
        """Fetch one page; may raise typed LMS, transport or parse errors."""

    @abstractmethod
    def _fetch_quizzes_by_ids(self, ids: list[str]) -> list[Result[QuizData]]:
        """Fetch quizzes by id, one result per id in given order."""

    @abstractmethod
    def _fetch_account_details(self, user_id: str) -> AccountDetails:
        """Fetch account details; may raise typed LMS, transport or parse errors."""

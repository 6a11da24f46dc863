"""Connection test outcome for one LMS configuration."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from lms_gateway.domain.lms import LmsConfigAttribute


class ErrorType(StrEnum):
    """Error kinds reported by LMS connection tests and listing calls."""

    MISSING_ATTRIBUTE = "missing_attribute"
    TOKEN_REQUEST = "token_request"
    QUIZ_ACCESS_API_REQUEST = "quiz_access_api_request"
    QUIZ_RESTRICTION_API_REQUEST = "quiz_restriction_api_request"


@dataclass(frozen=True)
class ConnectivityError:
    """One classified connectivity problem."""

    error_type: ErrorType
    message: str


@dataclass(frozen=True)
class ConnectivityResult:
    """Ordered errors plus the configuration attributes found missing."""

    errors: tuple[ConnectivityError, ...] = ()
    missing_attributes: tuple[LmsConfigAttribute, ...] = ()

    def is_ok(self) -> bool:
        """Return True when no error was recorded."""
        return not self.errors

    def is_quiz_access_ok(self) -> bool:
        """Return True when ok, or when the only problems are quiz restrictions.

        Restricted quiz listing still means the LMS answered an authenticated
        call, which is enough to schedule exams against it.
        """
        if self.is_ok():
            return True
        return all(
            error.error_type is ErrorType.QUIZ_RESTRICTION_API_REQUEST for error in self.errors
        )

    def has_error(self, error_type: ErrorType) -> bool:
        """Return whether an error of given kind is present."""
        return any(error.error_type is error_type for error in self.errors)

    def merge(self, other: ConnectivityResult) -> ConnectivityResult:
        """Return a result holding errors of both results, this one first."""
        missing = tuple(
            dict.fromkeys((*self.missing_attributes, *other.missing_attributes))
        )
        return ConnectivityResult(
            errors=(*self.errors, *other.errors),
            missing_attributes=missing,
        )

    @classmethod
    def ok(cls) -> ConnectivityResult:
        return cls()

    @classmethod
    def of_missing_attributes(
        cls,
        attributes: Iterable[LmsConfigAttribute],
    ) -> ConnectivityResult:
        missing = tuple(attributes)
        names = ", ".join(attribute.value for attribute in missing)
        return cls(
            errors=(
                ConnectivityError(
                    ErrorType.MISSING_ATTRIBUTE,
                    f"missing attribute(s): {names}",
                ),
            ),
            missing_attributes=missing,
        )

    @classmethod
    def of_token_request_error(cls, message: str) -> ConnectivityResult:
        return cls(errors=(ConnectivityError(ErrorType.TOKEN_REQUEST, message),))

    @classmethod
    def of_quiz_access_api_error(cls, message: str) -> ConnectivityResult:
        return cls(errors=(ConnectivityError(ErrorType.QUIZ_ACCESS_API_REQUEST, message),))

    @classmethod
    def of_quiz_restriction_api_error(cls, message: str) -> ConnectivityResult:
        return cls(
            errors=(ConnectivityError(ErrorType.QUIZ_RESTRICTION_API_REQUEST, message),)
        )

    @classmethod
    def of_error(cls, error_type: ErrorType, message: str) -> ConnectivityResult:
        """Build a single-error result of given kind."""
        return cls(errors=(ConnectivityError(error_type, message),))

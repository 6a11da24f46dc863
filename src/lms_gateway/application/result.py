"""Typed success-or-failure value returned across the adapter boundary."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, cast

import httpx
from pydantic import ValidationError

from lms_gateway.application.lms import LmsAPIError, QuizAccessError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an ``LmsAPIError``, never both."""

    _value: T | None = None
    error: LmsAPIError | None = None

    @classmethod
    def of(cls, value: T) -> Result[T]:
        return cls(_value=value)

    @classmethod
    def of_error(cls, error: LmsAPIError) -> Result[T]:
        return cls(error=error)

    @classmethod
    def try_catch(cls, operation: Callable[[], T]) -> Result[T]:
        """Run operation and convert any failure to a result.

        LMS errors pass through as they are; transport, parse and unexpected
        failures become ``QuizAccessError``.
        """
        try:
            return cls.of(operation())
        except LmsAPIError as exc:
            return cls.of_error(exc)
        except httpx.HTTPError as exc:
            LOGGER.warning("event=lms_transport_failed error_type=%s", exc.__class__.__name__)
            error = QuizAccessError(f"LMS request failed: {exc.__class__.__name__}.")
            error.__cause__ = exc
            return cls.of_error(error)
        except ValidationError as exc:
            LOGGER.warning("event=lms_payload_invalid errors=%s", exc.error_count())
            error = QuizAccessError("LMS returned a payload of unexpected shape.")
            error.__cause__ = exc
            return cls.of_error(error)
        except Exception as exc:
            LOGGER.exception("event=lms_call_crashed error_type=%s", exc.__class__.__name__)
            error = QuizAccessError(f"LMS call failed unexpectedly: {exc.__class__.__name__}.")
            error.__cause__ = exc
            return cls.of_error(error)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def value(self) -> T:
        """Return value; raise the carried error when this is a failure."""
        return self.get_or_raise()

    def get_or_raise(self) -> T:
        if self.error is not None:
            raise self.error
        return cast(T, self._value)

    def get_or(self, fallback: T) -> T:
        return fallback if self.error is not None else cast(T, self._value)

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        """Apply mapper to the value; failures pass through unchanged."""
        if self.error is not None:
            return Result(error=self.error)
        return Result.try_catch(lambda: mapper(cast(T, self._value)))

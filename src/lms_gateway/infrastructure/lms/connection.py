"""Staged connectivity check for one LMS setup."""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from lms_gateway.application.lms import LmsAPIError, TokenRequestError, connectivity_of
from lms_gateway.domain.connectivity import ConnectivityResult
from lms_gateway.domain.lms import LmsConfig, LmsConfigAttribute, LmsType

LOGGER = logging.getLogger(__name__)


def missing_attributes(config: LmsConfig) -> list[LmsConfigAttribute]:
    """Return every required attribute that is blank on config."""
    missing: list[LmsConfigAttribute] = []
    if not config.api_url.strip():
        missing.append(LmsConfigAttribute.API_URL)
    if not config.client_name.strip():
        missing.append(LmsConfigAttribute.CLIENT_NAME)
    if not config.client_secret.strip():
        missing.append(LmsConfigAttribute.CLIENT_SECRET)
    return missing


class ConnectionTester:
    """Check type, required fields, then token acquisition; stop at first failure.

    No quiz listing is issued. Quiz access problems surface later from listing
    calls and are merged into a result by the caller.
    """

    def __init__(
        self,
        *,
        expected_type: LmsType,
        acquire_token: Callable[[], object] | None = None,
    ) -> None:
        self._expected_type = expected_type
        self._acquire_token = acquire_token

    def test(self, config: LmsConfig) -> ConnectivityResult:
        LOGGER.info(
            "event=lms_connection_test lms_setup_id=%s lms_type=%s adapter_type=%s",
            config.id,
            config.lms_type.value,
            self._expected_type.value,
        )
        if config.lms_type is not self._expected_type:
            return ConnectivityResult.of_missing_attributes([LmsConfigAttribute.LMS_TYPE])

        missing = missing_attributes(config)
        if missing:
            return ConnectivityResult.of_missing_attributes(missing)

        if self._acquire_token is None:
            return ConnectivityResult.ok()

        try:
            self._acquire_token()
        except TokenRequestError as exc:
            return ConnectivityResult.of_token_request_error(str(exc))
        except LmsAPIError as exc:
            return connectivity_of(exc)
        except httpx.HTTPError as exc:
            return ConnectivityResult.of_token_request_error(
                f"Token request failed: {exc.__class__.__name__}."
            )
        except Exception as exc:
            LOGGER.exception(
                "event=lms_connection_test_failed lms_setup_id=%s error_type=%s",
                config.id,
                exc.__class__.__name__,
            )
            return ConnectivityResult.of_token_request_error(
                f"Unexpected failure while requesting access token: {exc.__class__.__name__}."
            )
        return ConnectivityResult.ok()

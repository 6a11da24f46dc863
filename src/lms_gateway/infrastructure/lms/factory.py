"""Default registry wiring for the built-in LMS adapters."""

from __future__ import annotations

import httpx

from lms_gateway.application.lms import AccessTokenStore, CredentialVault, LmsAdapter
from lms_gateway.domain.lms import LmsConfig, LmsType
from lms_gateway.infrastructure.lms.config import LmsAdapterConfig, default_adapter_config
from lms_gateway.infrastructure.lms.mock import MockLmsAdapter
from lms_gateway.infrastructure.lms.moodle import MoodleLmsAdapter
from lms_gateway.infrastructure.lms.openedx import OpenEdxLmsAdapter
from lms_gateway.infrastructure.lms.registry import LmsAdapterRegistry
from lms_gateway.infrastructure.lms.retry import RetryExecutor


def create_default_registry(
    *,
    vault: CredentialVault,
    token_store: AccessTokenStore | None = None,
    http_client: httpx.Client | None = None,
    config: LmsAdapterConfig | None = None,
) -> LmsAdapterRegistry:
    """Create registry serving mock, Open edX and Moodle setups.

    A shared ``http_client`` stays owned by the caller; without one every
    adapter opens and closes its own client.
    """
    resolved = config or default_adapter_config()

    def build_open_edx(lms_config: LmsConfig) -> LmsAdapter:
        return OpenEdxLmsAdapter(
            lms_config,
            vault=vault,
            http_client=http_client,
            token_store=token_store,
            alternative_token_paths=resolved.alternative_paths_for(LmsType.OPEN_EDX),
            timeout_seconds=resolved.timeout_seconds,
            expiry_skew_seconds=resolved.token_expiry_skew_seconds,
            retry_executor=RetryExecutor(resolved.retry_policy),
        )

    def build_moodle(lms_config: LmsConfig) -> LmsAdapter:
        return MoodleLmsAdapter(
            lms_config,
            vault=vault,
            http_client=http_client,
            token_store=token_store,
            alternative_token_paths=resolved.alternative_paths_for(LmsType.MOODLE),
            service=resolved.moodle_service,
            timeout_seconds=resolved.timeout_seconds,
            expiry_skew_seconds=resolved.token_expiry_skew_seconds,
            retry_executor=RetryExecutor(resolved.retry_policy),
        )

    return LmsAdapterRegistry(
        {
            LmsType.MOCK: MockLmsAdapter,
            LmsType.OPEN_EDX: build_open_edx,
            LmsType.MOODLE: build_moodle,
        }
    )

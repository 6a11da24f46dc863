"""Configuration for LMS adapter construction."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from lms_gateway.domain.lms import LmsType
from lms_gateway.infrastructure.lms.errors import LmsAdapterConfigurationError
from lms_gateway.infrastructure.lms.retry import RetryPolicy

HTTP_TIMEOUT_ENV_VAR = "LMS_GATEWAY_HTTP_TIMEOUT_SECONDS"
OPEN_EDX_TOKEN_PATHS_ENV_VAR = "LMS_GATEWAY_OPENEDX_TOKEN_PATHS"
MOODLE_TOKEN_PATHS_ENV_VAR = "LMS_GATEWAY_MOODLE_TOKEN_PATHS"
MOODLE_SERVICE_ENV_VAR = "LMS_GATEWAY_MOODLE_SERVICE"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MOODLE_SERVICE = "moodle_mobile_app"


@dataclass(frozen=True)
class LmsAdapterConfig:
    """Settings shared by all adapters built by one registry."""

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retry_policy: RetryPolicy = RetryPolicy()
    token_expiry_skew_seconds: float = 30.0
    alternative_token_paths: Mapping[LmsType, tuple[str, ...]] = field(default_factory=dict)
    moodle_service: str = DEFAULT_MOODLE_SERVICE

    def alternative_paths_for(self, lms_type: LmsType) -> tuple[str, ...]:
        """Return alternative token paths configured for a backend type."""
        return tuple(self.alternative_token_paths.get(lms_type, ()))


def default_adapter_config() -> LmsAdapterConfig:
    """Build adapter config from environment with built-in fallbacks."""
    config = LmsAdapterConfig(
        timeout_seconds=_resolve_float(
            env_var=HTTP_TIMEOUT_ENV_VAR,
            fallback=DEFAULT_TIMEOUT_SECONDS,
        ),
        alternative_token_paths={
            LmsType.OPEN_EDX: _resolve_paths(OPEN_EDX_TOKEN_PATHS_ENV_VAR),
            LmsType.MOODLE: _resolve_paths(MOODLE_TOKEN_PATHS_ENV_VAR),
        },
        moodle_service=_resolve_text(
            env_var=MOODLE_SERVICE_ENV_VAR,
            fallback=DEFAULT_MOODLE_SERVICE,
        ),
    )
    validate_adapter_config(config)
    return config


def validate_adapter_config(config: LmsAdapterConfig) -> None:
    """Ensure adapter settings are usable."""
    if config.timeout_seconds <= 0:
        raise LmsAdapterConfigurationError(
            f"timeout_seconds must be > 0, got {config.timeout_seconds}."
        )
    if config.token_expiry_skew_seconds < 0:
        raise LmsAdapterConfigurationError("token_expiry_skew_seconds must be >= 0.")
    for lms_type, paths in config.alternative_token_paths.items():
        for path in paths:
            if not path.startswith("/"):
                raise LmsAdapterConfigurationError(
                    f"Token path for {lms_type.value} must start with '/': {path!r}"
                )


def _resolve_paths(env_var: str) -> tuple[str, ...]:
    raw_value = os.environ.get(env_var, "")
    return tuple(part.strip() for part in raw_value.split(",") if part.strip())


def _resolve_float(*, env_var: str, fallback: float) -> float:
    raw_value = os.environ.get(env_var, "").strip()
    if not raw_value:
        return fallback
    try:
        return float(raw_value)
    except ValueError as exc:
        raise LmsAdapterConfigurationError(
            f"{env_var} must be a number, got {raw_value!r}."
        ) from exc


def _resolve_text(*, env_var: str, fallback: str) -> str:
    raw_value = os.environ.get(env_var, "")
    resolved = raw_value.strip()
    return resolved if resolved else fallback

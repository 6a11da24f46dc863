"""Tests for environment-driven adapter configuration."""

from __future__ import annotations

import pytest

from lms_gateway.domain.lms import LmsType
from lms_gateway.infrastructure.lms.config import (
    HTTP_TIMEOUT_ENV_VAR,
    MOODLE_SERVICE_ENV_VAR,
    MOODLE_TOKEN_PATHS_ENV_VAR,
    OPEN_EDX_TOKEN_PATHS_ENV_VAR,
    LmsAdapterConfig,
    default_adapter_config,
    validate_adapter_config,
)
from lms_gateway.infrastructure.lms.errors import LmsAdapterConfigurationError


def test_default_adapter_config_without_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for env_var in (
        HTTP_TIMEOUT_ENV_VAR,
        OPEN_EDX_TOKEN_PATHS_ENV_VAR,
        MOODLE_TOKEN_PATHS_ENV_VAR,
        MOODLE_SERVICE_ENV_VAR,
    ):
        monkeypatch.delenv(env_var, raising=False)

    config = default_adapter_config()

    assert config.timeout_seconds == 10.0
    assert config.moodle_service == "moodle_mobile_app"
    assert config.alternative_paths_for(LmsType.OPEN_EDX) == ()
    assert config.alternative_paths_for(LmsType.MOCK) == ()


def test_default_adapter_config_reads_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(HTTP_TIMEOUT_ENV_VAR, "2.5")
    monkeypatch.setenv(OPEN_EDX_TOKEN_PATHS_ENV_VAR, " /oauth/token , ,/edx/token")
    monkeypatch.setenv(MOODLE_TOKEN_PATHS_ENV_VAR, "/moodle/login/token.php")
    monkeypatch.setenv(MOODLE_SERVICE_ENV_VAR, "exam_service")

    config = default_adapter_config()

    assert config.timeout_seconds == 2.5
    assert config.alternative_paths_for(LmsType.OPEN_EDX) == ("/oauth/token", "/edx/token")
    assert config.alternative_paths_for(LmsType.MOODLE) == ("/moodle/login/token.php",)
    assert config.moodle_service == "exam_service"


def test_non_numeric_timeout_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(HTTP_TIMEOUT_ENV_VAR, "soon")

    with pytest.raises(LmsAdapterConfigurationError, match=HTTP_TIMEOUT_ENV_VAR):
        default_adapter_config()


def test_relative_token_path_is_rejected() -> None:
    config = LmsAdapterConfig(alternative_token_paths={LmsType.OPEN_EDX: ("oauth/token",)})

    with pytest.raises(LmsAdapterConfigurationError, match="must start with"):
        validate_adapter_config(config)

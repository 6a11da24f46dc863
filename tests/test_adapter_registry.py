"""Tests for adapter resolution and caching."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest

from lms_gateway.application.lms import LmsConfigurationError
from lms_gateway.domain.lms import LmsConfig, LmsType
from lms_gateway.infrastructure.lms.config import LmsAdapterConfig
from lms_gateway.infrastructure.lms.errors import UnsupportedLmsTypeError
from lms_gateway.infrastructure.lms.factory import create_default_registry
from lms_gateway.infrastructure.lms.mock import MockLmsAdapter
from lms_gateway.infrastructure.lms.moodle import MoodleLmsAdapter
from lms_gateway.infrastructure.lms.openedx import OpenEdxLmsAdapter
from lms_gateway.infrastructure.lms.registry import LmsAdapterRegistry
from tests.lms_fixture_utils import TEST_VAULT, make_config


class _ClosingMock(MockLmsAdapter):
    closed: list[str] = []

    def close(self) -> None:
        _ClosingMock.closed.append(self.config.id)


def test_default_registry_builds_adapter_per_type() -> None:
    registry = create_default_registry(vault=TEST_VAULT, config=LmsAdapterConfig())
    try:
        mock = registry.resolve(make_config(LmsType.MOCK, setup_id="m")).value
        edx = registry.resolve(make_config(LmsType.OPEN_EDX, setup_id="e")).value
        moodle = registry.resolve(make_config(LmsType.MOODLE, setup_id="o")).value
    finally:
        registry.close()

    assert isinstance(mock, MockLmsAdapter)
    assert isinstance(edx, OpenEdxLmsAdapter)
    assert isinstance(moodle, MoodleLmsAdapter)
    assert registry.supported_types == (LmsType.MOCK, LmsType.OPEN_EDX, LmsType.MOODLE)


def test_unregistered_type_is_configuration_error() -> None:
    registry = LmsAdapterRegistry({LmsType.MOCK: MockLmsAdapter})

    result = registry.resolve(make_config(LmsType.MOODLE))

    assert isinstance(result.error, UnsupportedLmsTypeError)
    assert isinstance(result.error, LmsConfigurationError)


def test_same_config_reuses_cached_adapter() -> None:
    registry = LmsAdapterRegistry({LmsType.MOCK: MockLmsAdapter})
    config = make_config(LmsType.MOCK)

    first = registry.resolve(config).value
    second = registry.resolve(config).value

    assert first is second


def test_changed_config_rebuilds_adapter_and_keeps_replaced_one_open() -> None:
    _ClosingMock.closed.clear()
    registry = LmsAdapterRegistry()
    registry.register(LmsType.MOCK, _ClosingMock)
    config = make_config(LmsType.MOCK)

    first = registry.resolve(config).value
    changed: LmsConfig = replace(config, api_url="https://other.example.org")
    second = registry.resolve(changed).value

    assert first is not second
    assert second.config.api_url == "https://other.example.org"
    assert _ClosingMock.closed == []
    assert not first.get_quizzes().has_error

    registry.close()

    assert _ClosingMock.closed == ["setup-1", "setup-1"]


def test_adapter_replaced_by_rotated_credentials_still_serves_callers(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/access_token":
            return httpx.Response(status_code=200, json={"access_token": "tok", "expires_in": 60})
        return httpx.Response(status_code=200, json={"results": []})

    real_client = httpx.Client
    monkeypatch.setattr(
        httpx,
        "Client",
        lambda *args, **kwargs: real_client(transport=httpx.MockTransport(handler)),
    )
    registry = create_default_registry(vault=TEST_VAULT, config=LmsAdapterConfig())
    config = make_config(LmsType.OPEN_EDX)
    try:
        old = registry.resolve(config).value
        registry.resolve(replace(config, client_name="rotated-client"))
        result = old.get_quizzes()
    finally:
        registry.close()

    assert not result.has_error
    assert result.value.content == []


def test_evict_and_close_release_adapters() -> None:
    _ClosingMock.closed.clear()
    registry = LmsAdapterRegistry({LmsType.MOCK: _ClosingMock})
    registry.resolve(make_config(LmsType.MOCK, setup_id="a"))
    registry.resolve(make_config(LmsType.MOCK, setup_id="b"))

    registry.evict("a")
    registry.evict("unknown")
    registry.close()

    assert _ClosingMock.closed == ["a", "b"]

"""Adapter registry: resolve one cached adapter per LMS setup."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping

from lms_gateway.application.lms import LmsAdapter
from lms_gateway.application.result import Result
from lms_gateway.domain.lms import LmsConfig, LmsConfigAttribute, LmsType
from lms_gateway.infrastructure.lms.errors import UnsupportedLmsTypeError

LOGGER = logging.getLogger(__name__)

AdapterBuilder = Callable[[LmsConfig], LmsAdapter]


class LmsAdapterRegistry:
    """Build adapters by LMS type and keep one instance per setup id.

    A cached adapter is rebuilt when the setup's config changes. The replaced
    adapter may still be held by callers, so it stays open until ``close``.
    """

    def __init__(self, builders: Mapping[LmsType, AdapterBuilder] | None = None) -> None:
        self._builders: dict[LmsType, AdapterBuilder] = dict(builders or {})
        self._adapters: dict[str, LmsAdapter] = {}
        self._replaced: list[LmsAdapter] = []
        self._lock = threading.Lock()

    def register(self, lms_type: LmsType, builder: AdapterBuilder) -> None:
        with self._lock:
            self._builders[lms_type] = builder

    @property
    def supported_types(self) -> tuple[LmsType, ...]:
        with self._lock:
            return tuple(lms_type for lms_type in LmsType if lms_type in self._builders)

    def resolve(self, config: LmsConfig) -> Result[LmsAdapter]:
        """Return the adapter bound to config, or an error for unknown types."""
        with self._lock:
            cached = self._adapters.get(config.id)
            if cached is not None and cached.config == config:
                return Result.of(cached)

            builder = self._builders.get(config.lms_type)
            if builder is None:
                LOGGER.warning(
                    "event=lms_adapter_unsupported lms_setup_id=%s lms_type=%s",
                    config.id,
                    config.lms_type.value,
                )
                return Result.of_error(
                    UnsupportedLmsTypeError(
                        f"No LMS adapter registered for type {config.lms_type.value}.",
                        missing_attributes=[LmsConfigAttribute.LMS_TYPE],
                    )
                )

            if cached is not None:
                self._replaced.append(cached)
            adapter = builder(config)
            self._adapters[config.id] = adapter
            LOGGER.info(
                "event=lms_adapter_created lms_setup_id=%s lms_type=%s replaced=%s",
                config.id,
                config.lms_type.value,
                cached is not None,
            )
            return Result.of(adapter)

    def evict(self, lms_setup_id: str) -> None:
        """Close and forget the adapter cached for a setup."""
        with self._lock:
            adapter = self._adapters.pop(lms_setup_id, None)
        if adapter is not None:
            adapter.close()

    def close(self) -> None:
        """Close cached and replaced adapters."""
        with self._lock:
            adapters = [*self._replaced, *self._adapters.values()]
            self._replaced.clear()
            self._adapters.clear()
        for adapter in adapters:
            adapter.close()

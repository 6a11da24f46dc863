"""LMS adapter implementations."""

from lms_gateway.infrastructure.lms.config import LmsAdapterConfig, default_adapter_config
from lms_gateway.infrastructure.lms.factory import create_default_registry
from lms_gateway.infrastructure.lms.mock import MockLmsAdapter
from lms_gateway.infrastructure.lms.moodle import MoodleLmsAdapter
from lms_gateway.infrastructure.lms.openedx import OpenEdxLmsAdapter
from lms_gateway.infrastructure.lms.registry import LmsAdapterRegistry
from lms_gateway.infrastructure.lms.tokens import TokenManager, TokenState

__all__ = [
    "LmsAdapterConfig",
    "LmsAdapterRegistry",
    "MockLmsAdapter",
    "MoodleLmsAdapter",
    "OpenEdxLmsAdapter",
    "TokenManager",
    "TokenState",
    "create_default_registry",
    "default_adapter_config",
]

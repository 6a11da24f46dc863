"""Response helpers shared by LMS HTTP adapters."""

from __future__ import annotations

from typing import cast

import httpx

from lms_gateway.domain.lms import LmsType
from lms_gateway.infrastructure.lms.errors import (
    TokenRejectedError,
    UpstreamRequestError,
    UpstreamResponseError,
    UpstreamRestrictionError,
    UpstreamServerError,
)


def join_url(api_url: str, path: str) -> str:
    """Join configured API URL and an absolute path without doubling slashes."""
    return f"{api_url.rstrip('/')}/{path.lstrip('/')}"


def raise_for_status(lms_type: LmsType, response: httpx.Response) -> None:
    """Map an error HTTP status to the matching typed LMS error."""
    status_code = response.status_code
    if status_code < 400:
        return

    message = f"{lms_type.value} request failed with status={status_code}."
    detail = extract_error_detail(response)
    if detail:
        message = f"{message} detail={detail}"
    if status_code == 401:
        raise TokenRejectedError(message)
    if status_code == 403:
        raise UpstreamRestrictionError(message)
    if 500 <= status_code <= 599:
        raise UpstreamServerError(message)
    raise UpstreamRequestError(message)


def extract_error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return truncate_error_detail(text) if text else None

    if isinstance(payload, dict):
        payload_obj = normalize_json_object(cast(dict[object, object], payload))
        detail = _read_message_from_error_payload(payload_obj)
        if detail:
            return truncate_error_detail(detail)

    return None


def _read_message_from_error_payload(payload: dict[str, object]) -> str | None:
    for key in ("error_description", "developer_message", "message", "detail", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def truncate_error_detail(value: str, *, max_length: int = 300) -> str:
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}..."


def read_json(response: httpx.Response, *, lms_type: LmsType) -> object:
    """Decode response body as JSON or raise ``UpstreamResponseError``."""
    try:
        return cast(object, response.json())
    except ValueError as exc:
        raise UpstreamResponseError(f"{lms_type.value} returned invalid JSON payload.") from exc


def read_json_object(response: httpx.Response, *, lms_type: LmsType) -> dict[str, object]:
    payload = read_json(response, lms_type=lms_type)
    if not isinstance(payload, dict):
        raise UpstreamResponseError(f"{lms_type.value} response root must be a JSON object.")
    return normalize_json_object(cast(dict[object, object], payload))


def normalize_json_object(value: dict[object, object]) -> dict[str, object]:
    normalized: dict[str, object] = {}
    for key, item in value.items():
        normalized[str(key)] = item
    return normalized

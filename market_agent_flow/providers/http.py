"""Shared HTTP error mapping for provider clients."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import (
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
    UnknownError,
)

logger = logging.getLogger(__name__)


def raise_for_provider_status(response: httpx.Response, provider: str, entity: str = "resource") -> None:
    """Translate an HTTP error status into the provider error taxonomy."""
    status = response.status_code
    if status < 400:
        return
    if status == 404:
        raise NotFoundError(f"{provider}: {entity} not found")
    if status == 429:
        raise RateLimitError(provider, "request limit reached, wait before retrying", status)
    if status == 401:
        raise UnauthorizedError(provider, "API key is invalid", status)
    if status == 403:
        raise ForbiddenError(provider, "access denied, check API permissions", status)
    raise UnknownError(provider, f"unexpected HTTP {status}", status)


def get_json(
    client: httpx.Client,
    provider: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
    entity: str = "resource",
) -> Any:
    """GET `url` and decode JSON, mapping every failure to a provider error."""
    try:
        response = client.get(url, params=params, headers=headers, timeout=timeout)
    except httpx.TransportError as e:
        logger.error("%s request to %s failed: %s", provider, url, e)
        raise NetworkError(provider, f"request failed: {e}") from e

    raise_for_provider_status(response, provider, entity)
    try:
        return response.json()
    except ValueError as e:
        raise UnknownError(provider, "response was not valid JSON", response.status_code) from e

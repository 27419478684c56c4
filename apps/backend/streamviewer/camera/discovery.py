from __future__ import annotations

from typing import Any

import requests

from streamviewer.config.defaults import (
    DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS,
)
from streamviewer.errors import DiscoveryFailed, DiscoveryUnreachable, UpstreamError, ValidationError
from streamviewer.util.logging import get_logger
from streamviewer.util.security import sanitize_url

logger = get_logger(__name__)


def normalize_base_url(server_url: str) -> str:
    value = str(server_url).strip()
    if not value:
        raise ValidationError("serverUrl is required")
    if value.endswith("/"):
        value = value[:-1]
    return value


def discover_streams(
    server_url: str,
    connect_timeout: float = DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS,
    read_timeout: float = DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS,
) -> dict[str, Any]:
    """List the upstream server's streams via ``GET {base}/api/streams``.

    Returns the decoded JSON object unchanged; its keys are the stream names.
    Blocks for at most the connect plus read timeout and never retries.
    """
    base = normalize_base_url(server_url)
    url = f"{base}/api/streams"
    logger.debug("discovering streams from %s", sanitize_url(url))

    try:
        response = requests.get(url, timeout=(connect_timeout, read_timeout))
    except requests.RequestException as exc:
        raise DiscoveryUnreachable(f"Upstream server unreachable: {exc}") from exc

    if response.status_code != 200:
        raise DiscoveryFailed(response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamError("Upstream server returned invalid JSON") from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise UpstreamError("Upstream stream listing is not a JSON object")
    return payload

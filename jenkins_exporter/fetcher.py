"""
Jenkins executor status retrieval.

One GET per target against ``<target>/computer/api/json``, decoded into a
list of NodeStatus records. Errors are raised to the caller; retrying is
left to the next poll cycle.
"""
import logging
import socket
from typing import Any, TypedDict

import requests

from jenkins_exporter import __version__
from jenkins_exporter.config import DEFAULT_FETCH_TIMEOUT

logger = logging.getLogger(__name__)

STATUS_PATH = "/computer/api/json"
USER_AGENT = f"jenkins-exporter/{__version__}"


class NodeStatus(TypedDict):
    """State of one Jenkins node as reported by a single fetch."""
    name: str
    offline: bool
    # None when the document has no temporarilyOffline field
    temporarily_offline: bool | None


def status_url(target: str) -> str:
    """Build the executor status URL for a Jenkins base URL."""
    return f"{target.rstrip('/')}{STATUS_PATH}"


def _optional_bool(entry: dict[str, Any], key: str) -> bool | None:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValueError(f"computer entry field {key!r} is not a boolean: {value!r}")
    return value


def decode_executor_status(document: Any) -> list[NodeStatus]:
    """
    Turn a decoded ``/computer/api/json`` document into NodeStatus records.

    Expected shape::

        {"computer": [{"displayName": "node1", "offline": false,
                       "temporarilyOffline": false}, ...]}

    Unknown fields are ignored. A missing ``offline`` reads as False and a
    missing ``displayName`` as an empty string.

    Raises:
        ValueError: if the document does not have the expected structure
    """
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")

    computers = document.get("computer")
    if computers is None:
        computers = []
    if not isinstance(computers, list):
        raise ValueError(f"'computer' is not a list: {type(computers).__name__}")

    statuses: list[NodeStatus] = []
    for entry in computers:
        if not isinstance(entry, dict):
            raise ValueError(f"computer entry is not an object: {entry!r}")
        name = entry.get("displayName")
        if name is None:
            name = ""
        if not isinstance(name, str):
            raise ValueError(f"computer entry displayName is not a string: {name!r}")
        statuses.append(NodeStatus(
            name=name,
            offline=bool(_optional_bool(entry, "offline")),
            temporarily_offline=_optional_bool(entry, "temporarilyOffline"),
        ))
    return statuses


def fetch(
    target: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    session: requests.Session | None = None,
) -> list[NodeStatus]:
    """
    Fetch and decode the node list of one Jenkins server.

    Args:
        target: Jenkins base URL, e.g. ``http://jenkins:8080``
        timeout: connect/read timeout in seconds
        session: optional requests session to reuse connections

    Returns:
        NodeStatus list, in document order

    Raises:
        requests.RequestException: transport failure or non-2xx response
        ValueError: body is not JSON or not shaped like a status document
    """
    http = session if session is not None else requests
    url = status_url(target)
    res = http.get(
        url,
        timeout=timeout,
        headers={"Accept": "application/json", "User-Agent": USER_AGENT},
    )
    res.raise_for_status()
    statuses = decode_executor_status(res.json())
    logger.debug(f"Fetched {len(statuses)} node(s) from {url}")
    return statuses


# ======================
# Error Categorization
# ======================

def categorize_error(error: Exception) -> str:
    """
    Categorize a fetch exception for the scrape error counters.

    Returns:
        'timeout', 'connection_refused', 'network', 'http', 'invalid_url',
        'parse' or 'other'
    """
    error_str = str(error).lower()

    if isinstance(error, (requests.Timeout, socket.timeout)):
        return "timeout"
    if isinstance(error, ConnectionRefusedError) or "connection refused" in error_str:
        return "connection_refused"
    if isinstance(error, requests.ConnectionError):
        return "network"
    if isinstance(error, requests.HTTPError):
        return "http"
    if isinstance(error, (requests.exceptions.MissingSchema,
                          requests.exceptions.InvalidSchema,
                          requests.exceptions.InvalidURL)):
        return "invalid_url"
    if isinstance(error, ValueError):
        return "parse"
    if isinstance(error, OSError):
        return "network"
    return "other"

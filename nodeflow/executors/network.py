"""HTTP request executor."""

from typing import Any, Dict, Optional
import requests
from pydantic import Field

from ..core.executor_registry import ExecutorResult
from ..core.logging import get_logger
from .base import ExecutorParams, node_executor

logger = get_logger(__name__)

BODYLESS_METHODS = {"GET", "HEAD", "OPTIONS"}


class HttpRequestParams(ExecutorParams):
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    timeout: Optional[int] = Field(default=None, gt=0, description="Call timeout in milliseconds")


def make_http_request_executor(default_timeout_ms: int = 30000):
    """
    Build the http-request executor with a default call timeout.

    Args:
        default_timeout_ms: Timeout used when a node does not set ``timeout``

    Returns:
        Executor performing the request with ``requests``
    """

    @node_executor(HttpRequestParams)
    def http_request(node, params, node_input, context):
        method = params.method.upper()
        timeout_ms = params.timeout or default_timeout_ms
        headers = {"Content-Type": "application/json", **params.headers}

        logger.debug(f"Node {node.id}: {method} {params.url} (timeout {timeout_ms}ms)")

        try:
            response = requests.request(
                method,
                params.url,
                headers=headers,
                json=params.body if method not in BODYLESS_METHODS else None,
                timeout=timeout_ms / 1000.0,
            )
        except requests.RequestException as e:
            return ExecutorResult.fail(f"{type(e).__name__}: {e}")

        try:
            body = response.json()
        except ValueError:
            body = response.text

        return ExecutorResult.ok({
            "status": response.status_code,
            "status_text": response.reason,
            "headers": dict(response.headers),
            "body": body,
        })

    return http_request

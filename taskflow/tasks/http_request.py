"""HTTP request task backed by ``requests``."""

import functools
import json
from typing import Any, Dict

import requests

from ..core.logging import get_logger
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamOption, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import get_number, get_str

logger = get_logger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
DEFAULT_TIMEOUT = 30.0

HTTP_REQUEST_CONFIG = TaskConfig(
    id="http-request",
    name="HTTP Request",
    category=TaskCategory.ACTION,
    description="Send an HTTP request and return the response",
    params=[
        ParamConfig(
            name="url",
            type=ParamType.STRING,
            label="URL",
            required=True,
            description="Full request URL",
        ),
        ParamConfig(
            name="method",
            type=ParamType.SELECT,
            label="Method",
            required=True,
            default="GET",
            options=[ParamOption(label=method, value=method) for method in HTTP_METHODS],
        ),
        ParamConfig(
            name="headers",
            type=ParamType.JSON,
            label="Headers",
            required=False,
            default={},
            description="Request headers as a JSON object",
        ),
        ParamConfig(
            name="body",
            type=ParamType.JSON,
            label="Body",
            required=False,
            description="Request body for POST/PUT/PATCH; objects are sent as JSON",
        ),
        ParamConfig(
            name="timeout",
            type=ParamType.NUMBER,
            label="Timeout",
            required=False,
            default=30,
            description="Request timeout in seconds",
        ),
    ],
)


def _response_data(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        body = response.text

    return {
        "statusCode": response.status_code,
        "status": f"{response.status_code} {response.reason or ''}".strip(),
        "body": body,
        "headers": dict(response.headers),
    }


def execute_http_request(task_input: TaskInput, default_timeout: float = DEFAULT_TIMEOUT) -> TaskOutput:
    url = get_str(task_input, "url").strip()
    if not url:
        return TaskOutput.failure("URL cannot be empty")

    method = (get_str(task_input, "method") or "GET").upper()
    if method not in HTTP_METHODS:
        return TaskOutput.failure(f"Unsupported HTTP method: {method}")

    timeout = get_number(task_input, "timeout")
    if timeout is None or timeout <= 0:
        timeout = default_timeout

    headers = {"Content-Type": "application/json"}
    raw_headers = task_input.get("headers")
    if isinstance(raw_headers, dict):
        for key, value in raw_headers.items():
            if isinstance(value, str):
                headers[key] = value

    data = None
    body = task_input.get("body")
    if isinstance(body, str):
        data = body.encode("utf-8")
    elif isinstance(body, (dict, list)):
        data = json.dumps(body).encode("utf-8")

    logger.debug(f"HTTP {method} {url} (timeout={timeout}s)")

    try:
        response = requests.request(method, url, headers=headers, data=data, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"HTTP {method} {url} failed: {e}")
        return TaskOutput.failure(f"Request failed: {e}")

    result = _response_data(response)
    if response.status_code >= 400:
        return TaskOutput.failure(f"HTTP error: {result['status']}", data=result)

    return TaskOutput.success(result)


def register_http_request(registry: TaskRegistry, default_timeout: float = DEFAULT_TIMEOUT) -> None:
    executor = functools.partial(execute_http_request, default_timeout=default_timeout)
    registry.register(HTTP_REQUEST_CONFIG, executor)

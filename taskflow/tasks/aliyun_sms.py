"""Aliyun SMS task using the signed SendSms RPC API."""

import base64
import functools
import hashlib
import hmac
import json
import urllib.parse
import uuid
from datetime import datetime, timezone
from typing import Dict, Mapping

import requests

from ..core.logging import get_logger
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamOption, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import get_str

logger = get_logger(__name__)

SMS_ENDPOINT = "https://dysmsapi.aliyuncs.com/"
SMS_API_VERSION = "2017-05-25"
DEFAULT_REGION = "cn-hangzhou"
DEFAULT_TIMEOUT = 30.0

ALIYUN_SMS_CONFIG = TaskConfig(
    id="aliyun-sms",
    name="Aliyun SMS",
    category=TaskCategory.ACTION,
    description="Send a text message through Aliyun SMS",
    params=[
        ParamConfig(name="accessKeyId", type=ParamType.STRING, label="AccessKey ID", required=True),
        ParamConfig(name="accessKeySecret", type=ParamType.PASSWORD, label="AccessKey Secret", required=True),
        ParamConfig(
            name="phoneNumbers",
            type=ParamType.STRING,
            label="Phone numbers",
            required=True,
            description="Recipient numbers, comma separated (up to 1000)",
        ),
        ParamConfig(
            name="signName",
            type=ParamType.STRING,
            label="Sign name",
            required=True,
            description="Approved SMS signature",
        ),
        ParamConfig(
            name="templateCode",
            type=ParamType.STRING,
            label="Template code",
            required=True,
            description="Approved SMS template code",
        ),
        ParamConfig(
            name="templateParam",
            type=ParamType.JSON,
            label="Template parameters",
            required=False,
            default={},
            description='Template variables as JSON, e.g. {"code": "123456"}',
        ),
        ParamConfig(
            name="regionId",
            type=ParamType.SELECT,
            label="Region",
            required=False,
            default=DEFAULT_REGION,
            options=[
                ParamOption(label="China East 1 (Hangzhou)", value="cn-hangzhou"),
                ParamOption(label="China North 1 (Qingdao)", value="cn-qingdao"),
                ParamOption(label="China North 2 (Beijing)", value="cn-beijing"),
                ParamOption(label="China East 2 (Shanghai)", value="cn-shanghai"),
                ParamOption(label="China South 1 (Shenzhen)", value="cn-shenzhen"),
                ParamOption(label="Singapore", value="ap-southeast-1"),
            ],
        ),
    ],
)

REQUIRED_FIELDS = (
    ("accessKeyId", "AccessKey ID"),
    ("accessKeySecret", "AccessKey Secret"),
    ("phoneNumbers", "Phone numbers"),
    ("signName", "Sign name"),
    ("templateCode", "Template code"),
)


def percent_encode(value: str) -> str:
    """RFC 3986 encoding as required by Aliyun RPC signatures."""
    return urllib.parse.quote(value, safe="")


def compute_signature(params: Mapping[str, str], access_key_secret: str, http_method: str = "GET") -> str:
    """Compute the HMAC-SHA1 signature of an Aliyun RPC request."""
    canonical_query = "&".join(
        f"{percent_encode(key)}={percent_encode(params[key])}" for key in sorted(params)
    )
    string_to_sign = f"{http_method}&{percent_encode('/')}&{percent_encode(canonical_query)}"
    digest = hmac.new(
        f"{access_key_secret}&".encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def _template_param(value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value:
        return json.dumps(value, ensure_ascii=False)
    return ""


def execute_aliyun_sms(task_input: TaskInput, timeout: float = DEFAULT_TIMEOUT) -> TaskOutput:
    values = {key: get_str(task_input, key).strip() for key, _ in REQUIRED_FIELDS}
    for key, label in REQUIRED_FIELDS:
        if not values[key]:
            return TaskOutput.failure(f"{label} cannot be empty")

    params: Dict[str, str] = {
        "Format": "JSON",
        "Version": SMS_API_VERSION,
        "AccessKeyId": values["accessKeyId"],
        "SignatureMethod": "HMAC-SHA1",
        "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "SignatureVersion": "1.0",
        "SignatureNonce": str(uuid.uuid4()),
        "RegionId": get_str(task_input, "regionId") or DEFAULT_REGION,
        "Action": "SendSms",
        "PhoneNumbers": values["phoneNumbers"],
        "SignName": values["signName"],
        "TemplateCode": values["templateCode"],
    }
    template_param = _template_param(task_input.get("templateParam"))
    if template_param:
        params["TemplateParam"] = template_param

    params["Signature"] = compute_signature(params, values["accessKeySecret"])

    try:
        response = requests.get(SMS_ENDPOINT, params=params, timeout=timeout)
        payload = response.json()
    except requests.RequestException as e:
        logger.warning(f"Aliyun SMS request failed: {e}")
        return TaskOutput.failure(f"Request failed: {e}")
    except ValueError as e:
        return TaskOutput.failure(f"Failed to parse response: {e}")

    if not isinstance(payload, dict):
        return TaskOutput.failure("Failed to parse response: unexpected payload")

    code = str(payload.get("Code", ""))
    message = str(payload.get("Message", ""))
    request_id = str(payload.get("RequestId", ""))

    if code != "OK":
        return TaskOutput.failure(
            f"Failed to send SMS: {message} ({code})",
            data={"requestId": request_id, "code": code, "message": message},
        )

    return TaskOutput.success({
        "success": True,
        "requestId": request_id,
        "bizId": str(payload.get("BizId", "")),
        "code": code,
        "message": message,
    })


def register_aliyun_sms(registry: TaskRegistry, timeout: float = DEFAULT_TIMEOUT) -> None:
    registry.register(ALIYUN_SMS_CONFIG, functools.partial(execute_aliyun_sms, timeout=timeout))

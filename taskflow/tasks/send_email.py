"""Send-email task over SMTP with implicit TLS."""

import functools
import smtplib
from email.message import EmailMessage
from typing import List

from ..core.logging import get_logger
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import get_bool, get_str

logger = get_logger(__name__)

DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 465
SMTP_TIMEOUT = 30

SEND_EMAIL_CONFIG = TaskConfig(
    id="send-email",
    name="Send Email",
    category=TaskCategory.ACTION,
    description="Send an email through an SMTP server",
    params=[
        ParamConfig(
            name="to",
            type=ParamType.STRING,
            label="To",
            required=True,
            description="Recipient addresses, comma separated",
        ),
        ParamConfig(
            name="subject",
            type=ParamType.STRING,
            label="Subject",
            required=True,
        ),
        ParamConfig(
            name="body",
            type=ParamType.TEXTAREA,
            label="Body",
            required=True,
        ),
        ParamConfig(
            name="password",
            type=ParamType.PASSWORD,
            label="App password",
            required=True,
            description="SMTP password or app-specific password of the sender",
        ),
        ParamConfig(
            name="from",
            type=ParamType.STRING,
            label="From",
            required=True,
            description="Sender address, also used as the SMTP login",
        ),
        ParamConfig(
            name="cc",
            type=ParamType.STRING,
            label="Cc",
            required=False,
            description="Carbon copy addresses, comma separated",
        ),
        ParamConfig(
            name="isHTML",
            type=ParamType.BOOLEAN,
            label="HTML body",
            required=False,
            default=False,
        ),
    ],
)


def parse_addresses(addresses: str) -> List[str]:
    """Split a comma separated address list, dropping entries without an ``@``."""
    result = []
    for address in addresses.split(","):
        address = address.strip()
        if address and "@" in address:
            result.append(address)
    return result


def build_message(sender: str, to: List[str], cc: List[str], subject: str, body: str, is_html: bool) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = ", ".join(to)
    if cc:
        message["Cc"] = ", ".join(cc)
    message["Subject"] = subject
    message.set_content(body, subtype="html" if is_html else "plain", charset="utf-8")
    return message


def execute_send_email(
    task_input: TaskInput,
    smtp_host: str = DEFAULT_SMTP_HOST,
    smtp_port: int = DEFAULT_SMTP_PORT,
) -> TaskOutput:
    to = get_str(task_input, "to")
    subject = get_str(task_input, "subject")
    body = get_str(task_input, "body")
    password = get_str(task_input, "password")
    sender = get_str(task_input, "from").strip()
    cc = get_str(task_input, "cc")
    is_html = get_bool(task_input, "isHTML")

    if not to.strip():
        return TaskOutput.failure("Recipient cannot be empty")
    if not subject:
        return TaskOutput.failure("Subject cannot be empty")
    if not password:
        return TaskOutput.failure("Password cannot be empty")
    if not sender:
        return TaskOutput.failure("Sender cannot be empty")

    to_addresses = parse_addresses(to)
    if not to_addresses:
        return TaskOutput.failure("No valid recipient address")
    cc_addresses = parse_addresses(cc) if cc else []

    message = build_message(sender, to_addresses, cc_addresses, subject, body, is_html)
    recipients = to_addresses + cc_addresses

    try:
        with smtplib.SMTP_SSL(smtp_host, smtp_port, timeout=SMTP_TIMEOUT) as client:
            client.login(sender, password)
            client.send_message(message, from_addr=sender, to_addrs=recipients)
    except smtplib.SMTPAuthenticationError as e:
        return TaskOutput.failure(f"Failed to send email: authentication failed, check the password ({e.smtp_code})")
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"Sending email via {smtp_host}:{smtp_port} failed: {e}")
        return TaskOutput.failure(f"Failed to send email: {e}")

    logger.info(f"Sent email '{subject}' to {len(recipients)} recipients")
    return TaskOutput.success({
        "success": True,
        "message": "Email sent",
        "to": to_addresses,
        "cc": cc_addresses,
        "subject": subject,
        "recipients": len(recipients),
    })


def register_send_email(
    registry: TaskRegistry,
    smtp_host: str = DEFAULT_SMTP_HOST,
    smtp_port: int = DEFAULT_SMTP_PORT,
) -> None:
    executor = functools.partial(execute_send_email, smtp_host=smtp_host, smtp_port=smtp_port)
    registry.register(SEND_EMAIL_CONFIG, executor)

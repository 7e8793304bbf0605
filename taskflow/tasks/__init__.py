"""Built-in task implementations."""

from typing import Optional

from ..config import AppConfig
from ..core.logging import get_logger
from ..core.task_registry import TaskRegistry
from .aliyun_sms import register_aliyun_sms
from .basic_actions import register_basic_actions
from .conditions import register_conditions
from .http_request import register_http_request
from .schedule_trigger import register_schedule_trigger
from .send_email import register_send_email
from .transforms import register_transforms

logger = get_logger(__name__)


def register_builtin_tasks(registry: TaskRegistry, config: Optional[AppConfig] = None) -> None:
    """Register every built-in task type on ``registry``."""
    config = config or AppConfig()

    register_schedule_trigger(registry)
    register_basic_actions(registry)
    register_http_request(registry, default_timeout=config.http_timeout)
    register_send_email(registry, smtp_host=config.smtp_host, smtp_port=config.smtp_port)
    register_aliyun_sms(registry, timeout=config.http_timeout)
    register_conditions(registry)
    register_transforms(registry)

    logger.info(f"Registered {len(registry)} built-in task types")


__all__ = ["register_builtin_tasks"]

"""Tests for configuration, logging context and engine errors."""

import json
import logging
import os
import threading

import pytest

from taskflow.config import (
    AppConfig, LogLevel, get_config, get_production_config, load_config, reset_config, validate_config
)
from taskflow.core.exceptions import ConfigurationError, TaskRegistryError, create_error_response
from taskflow.core.logging import (
    ContextFilter, StructuredFormatter, clear_logging_context, logging_context, set_logging_context
)


def make_record(message="hello", **extra):
    record = logging.LogRecord("taskflow.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestAppConfig:
    """Test environment-driven configuration."""

    def test_defaults(self):
        config = AppConfig.from_env({})

        assert config.port == 8080
        assert config.smtp_host == "smtp.gmail.com"
        assert config.smtp_port == 465
        assert config.http_timeout == 30.0
        assert config.is_production

    def test_from_env(self):
        config = AppConfig.from_env({
            "TASKFLOW_PORT": "9000",
            "TASKFLOW_DEBUG": "yes",
            "TASKFLOW_LOG_LEVEL": "debug",
            "TASKFLOW_CORS_ORIGINS": "http://a.test, http://b.test,",
            "TASKFLOW_HTTP_TIMEOUT": "2.5",
            "UNRELATED": "ignored",
        })

        assert config.port == 9000
        assert config.debug is True
        assert config.log_level == LogLevel.DEBUG
        assert config.cors_origins == ["http://a.test", "http://b.test"]
        assert config.http_timeout == 2.5

    def test_from_env_rejects_bad_values(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_env({"TASKFLOW_PORT": "70000"})

    def test_load_config_reads_env_file(self, tmp_path):
        env_file = tmp_path / "test.env"
        env_file.write_text("TASKFLOW_SMTP_HOST=smtp.example.com\n")
        previous = os.environ.pop("TASKFLOW_SMTP_HOST", None)

        try:
            config = load_config(str(env_file))
            assert config.smtp_host == "smtp.example.com"
            assert get_config() is config
        finally:
            os.environ.pop("TASKFLOW_SMTP_HOST", None)
            if previous is not None:
                os.environ["TASKFLOW_SMTP_HOST"] = previous
            reset_config()

    def test_validate_config(self, tmp_path):
        validate_config(AppConfig(log_file=str(tmp_path / "logs" / "engine.log")))
        assert (tmp_path / "logs").is_dir()

        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(AppConfig(reload=True, debug=False))
        assert exc_info.value.context == {"config_key": "reload"}

    def test_uvicorn_config(self):
        assert get_production_config().get_uvicorn_config() == {
            "host": "0.0.0.0", "port": 8080, "reload": False, "log_level": "info", "access_log": False
        }


class TestLoggingContext:
    """Test correlation fields attached to log records."""

    def test_logging_context_is_scoped(self):
        context_filter = ContextFilter()

        with logging_context(run_id="r1"):
            with logging_context(node_id="n1"):
                inner = make_record()
                context_filter.filter(inner)
            outer = make_record()
            context_filter.filter(outer)
        after = make_record()
        context_filter.filter(after)

        assert inner.context == {"run_id": "r1", "node_id": "n1"}
        assert inner.context_suffix == " [run_id=r1 node_id=n1]"
        assert outer.context == {"run_id": "r1"}
        assert after.context == {}
        assert after.context_suffix == ""

    def test_set_and_clear_context(self):
        context_filter = ContextFilter()
        set_logging_context(request_id="abc", path="/api/tasks")
        try:
            clear_logging_context("path")
            record = make_record(extra_fields={"duration_ms": 3})
            context_filter.filter(record)
            assert record.context == {"request_id": "abc", "duration_ms": 3}
        finally:
            clear_logging_context()

    def test_context_does_not_leak_across_threads(self):
        context_filter = ContextFilter()
        seen = {}

        def worker():
            record = make_record()
            context_filter.filter(record)
            seen["context"] = record.context

        with logging_context(run_id="main-only"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert seen["context"] == {}

    def test_structured_formatter(self):
        record = make_record("run finished", context={"run_id": "r1"})

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "run finished"
        assert entry["level"] == "INFO"
        assert entry["run_id"] == "r1"
        assert entry["logger"] == "taskflow.test"


class TestEngineErrors:
    """Test exception metadata and error bodies."""

    def test_task_registry_error(self):
        error = TaskRegistryError("Executor must be callable", task_type="log", operation="register")

        assert error.status_code == 500
        assert error.error_code == "TaskRegistryError"
        assert error.to_dict()["context"] == {"task_type": "log", "operation": "register"}

    def test_create_error_response(self):
        error = ConfigurationError("Auto-reload requires debug mode", config_key="reload")

        assert create_error_response(error, request_id="req-1") == {
            "error": "Auto-reload requires debug mode",
            "code": "ConfigurationError",
            "category": "configuration",
            "context": {"config_key": "reload"},
            "request_id": "req-1",
        }

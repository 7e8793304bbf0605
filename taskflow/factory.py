"""Application factory for creating FastAPI instances."""

from contextlib import asynccontextmanager
from typing import Optional, Tuple
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import AppConfig, get_config, validate_config
from .core.logging import setup_logging, get_logger
from .core.execution_engine import ExecutionEngine
from .core.middleware import ErrorHandlingMiddleware, PerformanceMonitoringMiddleware, RequestLoggingMiddleware
from .core.task_registry import TaskRegistry
from .api.endpoints import router, init_dependencies, request_validation_exception_handler
from .tasks import register_builtin_tasks

logger = get_logger(__name__)


def build_engine(config: AppConfig) -> Tuple[TaskRegistry, ExecutionEngine]:
    """Create the task registry with every built-in task and an engine on top of it."""
    task_registry = TaskRegistry()
    register_builtin_tasks(task_registry, config)
    return task_registry, ExecutionEngine(task_registry)


def create_lifespan(config: AppConfig):
    """Lifespan handler: configure logging, build the engine and wire the router."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.log_structured,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count
        )
        logger.info(f"Starting {config.app_name} v{config.app_version}")

        task_registry, execution_engine = build_engine(config)
        app.state.config = config
        app.state.task_registry = task_registry
        app.state.execution_engine = execution_engine
        init_dependencies(task_registry=task_registry, execution_engine=execution_engine)

        logger.info(f"Ready with {len(task_registry)} task types")
        yield
        logger.info(f"Shutting down {config.app_name}")

    return lifespan


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Args:
        config: Settings to use; read from the environment when omitted

    Raises:
        ConfigurationError: If the settings are inconsistent
    """
    config = config or get_config()
    validate_config(config)

    app = FastAPI(
        title=config.app_name,
        description="Runs task workflows in dependency order and returns their execution trace",
        version=config.app_version,
        debug=config.debug,
        lifespan=create_lifespan(config)
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=config.cors_methods,
            allow_headers=["*"],
        )

    # Added last runs first: ErrorHandlingMiddleware wraps the other two.
    if config.enable_performance_monitoring:
        app.add_middleware(RequestLoggingMiddleware)
        app.add_middleware(PerformanceMonitoringMiddleware, slow_request_threshold=config.slow_request_threshold)
        app.add_middleware(ErrorHandlingMiddleware)

    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.include_router(router)
    add_health_endpoints(app)

    return app


def add_health_endpoints(app: FastAPI) -> None:
    """Root-level probes for load balancers, outside the ``/api`` prefix."""

    @app.get("/")
    async def root(request: Request):
        config = request.app.state.config
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check(request: Request):
        config = request.app.state.config
        return {
            "status": "healthy",
            "service": config.app_name.lower().replace(" ", "-"),
            "version": config.app_version,
            "task_types": len(request.app.state.task_registry)
        }

"""Application factory for creating FastAPI instances."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine, text

from .actions import register_default_actions
from .api.endpoints import router
from .config import AppConfig, get_config, validate_config
from .core.action_registry import ActionDispatcher, ActionRegistry
from .core.error_recovery import HealthChecker, RetryConfig
from .core.event_logger import ExecutionLogger
from .core.logging import setup_logging
from .core.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from .core.workflow_engine import WorkflowEngine
from .core.workflow_store import WorkflowStore
from .storage.database import build_engine, create_session_factory, create_tables
from .storage.migrations import create_lookup_indexes


class ApplicationState:
    """Container for the components wired into one application."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.db_engine: Optional[Engine] = None
        self.action_registry: Optional[ActionRegistry] = None
        self.dispatcher: Optional[ActionDispatcher] = None
        self.workflow_store: Optional[WorkflowStore] = None
        self.execution_logger: Optional[ExecutionLogger] = None
        self.workflow_engine: Optional[WorkflowEngine] = None
        self.health_checker = HealthChecker()


def initialize_database(config: AppConfig, logger) -> Engine:
    """Create the database engine, tables and lookup indexes."""
    try:
        db_engine = build_engine(
            config.database_url,
            echo=config.database_echo,
            connect_args=config.get_database_connect_args()
        )
        create_tables(db_engine)
        logger.info("Database tables created")

        try:
            create_lookup_indexes(db_engine)
        except Exception as e:
            # Lookups still work without the indexes, only slower.
            logger.warning(f"Lookup index creation failed: {str(e)}")

        return db_engine

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def initialize_core_components(state: ApplicationState, logger,
                               registry: Optional[ActionRegistry] = None) -> None:
    """Build registry, dispatcher, store, execution logger and engine."""
    config = state.config
    session_factory = create_session_factory(state.db_engine)

    if registry is None:
        registry = register_default_actions(ActionRegistry(), config)

    state.action_registry = registry
    state.dispatcher = ActionDispatcher(
        registry,
        timeout=config.action_timeout,
        retry_config=RetryConfig(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay
        ),
        max_workers=config.max_action_workers
    )
    state.workflow_store = WorkflowStore(session_factory)
    state.execution_logger = ExecutionLogger(session_factory)
    state.workflow_engine = WorkflowEngine(
        store=state.workflow_store,
        dispatcher=state.dispatcher,
        event_logger=state.execution_logger
    )
    logger.info("Core components initialized")


def setup_health_checks(state: ApplicationState, logger) -> None:
    """Register component health checks on the application's checker."""

    def check_database():
        with state.db_engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return {"message": "Database connection successful"}

    def check_action_registry():
        actions = state.action_registry.list_actions()
        if not actions:
            raise RuntimeError("No action handlers registered")
        return {"message": "Action registry operational", "registered_actions": len(actions)}

    checker = state.health_checker
    checker.register_check("database", check_database, timeout=state.config.health_check_timeout)
    checker.register_check("action_registry", check_action_registry, timeout=2.0)
    logger.info("Health checks registered")


def graceful_shutdown(state: ApplicationState, logger) -> None:
    """Release the action pool and database connections."""
    logger.info(f"Shutting down {state.config.app_name}")

    if state.dispatcher is not None:
        state.dispatcher.shutdown()

    if state.db_engine is not None:
        state.db_engine.dispose()
        logger.info("Database connections released")


def create_app(config: Optional[AppConfig] = None,
               registry: Optional[ActionRegistry] = None) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        config: Settings; loaded from the environment when omitted
        registry: Pre-populated action registry; the built-in handlers are
            registered when omitted
    """
    if config is None:
        config = get_config()

    validate_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.structured_logging,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count
        )
        logger.info(f"Starting {config.app_name} v{config.app_version}")

        state = ApplicationState(config)
        try:
            state.db_engine = initialize_database(config, logger)
            initialize_core_components(state, logger, registry)
            setup_health_checks(state, logger)
        except Exception as e:
            logger.error(f"Application startup failed: {e}")
            raise

        app.state.components = state
        app.state.action_registry = state.action_registry
        app.state.workflow_engine = state.workflow_engine
        app.state.execution_logger = state.execution_logger
        app.state.health_checker = state.health_checker
        logger.info("Application startup completed successfully")

        yield

        try:
            graceful_shutdown(state, logger)
        except Exception as e:
            logger.error(f"Error during graceful shutdown: {e}")

    app = FastAPI(
        title=config.app_name,
        description="Rule-based workflow automation: conditions gate ordered, templated actions",
        version=config.app_version,
        debug=config.debug,
        lifespan=lifespan
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=config.cors_methods,
            allow_headers=["*"],
        )

    if config.enable_request_logging:
        app.add_middleware(RequestLoggingMiddleware, slow_request_threshold=config.slow_request_threshold)
    app.add_middleware(ErrorHandlingMiddleware)

    app.include_router(router)

    add_health_endpoints(app, config)

    return app


def add_health_endpoints(app: FastAPI, config: AppConfig) -> None:
    """Add health check endpoints to the application."""
    service_name = config.app_name.lower().replace(" ", "-")

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": service_name,
            "version": config.app_version
        }

    @app.get("/health/detailed")
    async def detailed_health_check():
        """Detailed health check endpoint with component status."""
        results = await app.state.health_checker.run_all_checks()
        status_code = 200 if results["overall_status"] == "healthy" else 503

        return JSONResponse(
            status_code=status_code,
            content={
                "service": service_name,
                "version": config.app_version,
                **results
            }
        )

    @app.get("/health/ready")
    async def readiness_check():
        """Readiness check endpoint for container orchestration."""
        checker: HealthChecker = app.state.health_checker
        results = {}
        for check_name in ("database", "action_registry"):
            if check_name in checker.checks:
                results[check_name] = await checker.run_check(check_name)

        ready = bool(results) and all(
            result.get("status") == "healthy"
            for result in results.values()
        )

        return JSONResponse(
            status_code=200 if ready else 503,
            content={
                "ready": ready,
                "checks": results,
                "timestamp": datetime.utcnow().isoformat()
            }
        )

    @app.get("/health/live")
    async def liveness_check():
        """Liveness check endpoint for container orchestration."""
        return {
            "alive": True,
            "timestamp": datetime.utcnow().isoformat()
        }


def get_app_state(app: FastAPI) -> ApplicationState:
    """Get the components wired into an application."""
    return app.state.components

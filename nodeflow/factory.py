"""Application factory for creating FastAPI instances."""

from typing import Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .config import AppConfig, get_config
from .core.logging import setup_logging, get_logger
from .core.event_publisher import EventPublisher
from .core.execution_engine import ExecutionEngine
from .core.executor_registry import ExecutorRegistry
from .core.middleware import ErrorHandlingMiddleware, PerformanceMonitoringMiddleware
from .core.run_store import RunStore
from .core.websocket_manager import WebSocketManager, WebSocketEventChannel
from .core.workflow_store import WorkflowStore
from .storage.database import create_tables, get_db, init_database
from .api.endpoints import router, init_dependencies


class ApplicationState:
    """Container for application state and components."""

    def __init__(self):
        self.config: Optional[AppConfig] = None
        self.registry: Optional[ExecutorRegistry] = None
        self.workflow_store: Optional[WorkflowStore] = None
        self.run_store: Optional[RunStore] = None
        self.publisher: Optional[EventPublisher] = None
        self.websocket_manager: Optional[WebSocketManager] = None
        self.execution_engine: Optional[ExecutionEngine] = None


# Global application state
app_state = ApplicationState()


def initialize_database(config: AppConfig, logger) -> None:
    """Point the storage layer at the configured database and create tables."""
    try:
        logger.info(f"Using {config.database_type.value} database")
        init_database(config.database_url, echo=config.database_echo)
        create_tables()
        logger.info("Database tables created")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def initialize_core_components(config: AppConfig, logger) -> ApplicationState:
    """Build the registry, stores, publisher and engine."""
    state = ApplicationState()
    state.config = config
    state.registry = ExecutorRegistry.default(http_timeout_ms=config.http_default_timeout_ms)
    state.workflow_store = WorkflowStore()
    state.run_store = RunStore()
    state.websocket_manager = WebSocketManager()
    state.publisher = EventPublisher([WebSocketEventChannel(state.websocket_manager)])
    state.execution_engine = ExecutionEngine(
        registry=state.registry,
        run_store=state.run_store,
        publisher=state.publisher,
        max_concurrent_runs=config.max_concurrent_runs
    )

    missing = state.registry.missing_types()
    if missing:
        logger.warning(f"Node types without executors: {', '.join(missing)}")

    logger.info("Core components initialized")
    return state


def graceful_shutdown(state: ApplicationState, logger) -> None:
    """Handle graceful shutdown of application components."""
    logger.info("Shutting down nodeflow")

    if state.websocket_manager is not None:
        try:
            state.websocket_manager.stop_broadcast_processor()
        except Exception as e:
            logger.error(f"Error stopping WebSocket broadcast processor: {str(e)}")

    if state.execution_engine is not None:
        # Runs cannot be cancelled, so shutdown waits for them
        state.execution_engine.shutdown(wait=True)


def create_lifespan_handler(config: AppConfig):
    """Create application lifespan handler."""

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
        logger = get_logger(__name__)
        logger.info(f"Starting {config.app_name} v{config.app_version}")

        initialize_database(config, logger)
        state = initialize_core_components(config, logger)

        app_state.__dict__.update(state.__dict__)
        app.state.components = state

        init_dependencies(
            workflow_store=state.workflow_store,
            run_store=state.run_store,
            execution_engine=state.execution_engine,
            registry=state.registry,
            websocket_manager=state.websocket_manager,
            run_list_limit=config.run_list_limit
        )

        state.websocket_manager.start_broadcast_processor()
        logger.info("Application startup completed successfully")

        try:
            yield
        finally:
            graceful_shutdown(state, logger)

    return lifespan


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create and configure FastAPI application instance."""
    if config is None:
        config = get_config()

    app = FastAPI(
        title=config.app_name,
        description="Workflow execution engine for node graphs built in a visual editor",
        version=config.app_version,
        debug=config.debug,
        lifespan=create_lifespan_handler(config)
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=config.cors_methods,
            allow_headers=["*"],
        )

    if config.enable_performance_monitoring:
        app.add_middleware(PerformanceMonitoringMiddleware, slow_request_threshold=config.slow_request_threshold)
    app.add_middleware(ErrorHandlingMiddleware)

    app.include_router(router)
    add_health_endpoints(app, config)

    return app


def add_health_endpoints(app: FastAPI, config: AppConfig) -> None:
    """Add health check endpoints to the application."""
    service = config.app_name.lower().replace(" ", "-")

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Health check including database connectivity."""
        database = "healthy"
        try:
            db = next(get_db())
            try:
                db.execute(text("SELECT 1"))
            finally:
                db.close()
        except Exception as e:
            get_logger(__name__).error(f"Database health check failed: {str(e)}")
            database = "unhealthy"

        return {
            "status": "healthy" if database == "healthy" else "degraded",
            "service": service,
            "version": config.app_version,
            "database": database,
        }


def get_app_state() -> ApplicationState:
    """Get the current application state."""
    return app_state

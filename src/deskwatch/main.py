"""
Deskwatch - Main Application
============================

Helpdesk automation service.

Modules:
- Priority: rule and LLM based ticket priority decisions with a review queue
- Intake: inbound email risk scoring, intent gate and quarantine
- SLA: shift-aware response timers and shift-change reconciliation

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and pure rules
- Infrastructure: Database, LLM, shift config, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration
from deskwatch.config import Settings, settings

# Infrastructure
from deskwatch.infrastructure.database import (
    StorageCapabilities,
    close_database,
    create_tables,
    get_session_maker,
    init_database,
    probe_capabilities,
)
from deskwatch.infrastructure.llm import ILLMClient, MockLLMClient, OpenAILLMClient

# Priority Module
from deskwatch.priority.application import PriorityDecisionService, PriorityReviewService
from deskwatch.priority.infrastructure import (
    LLMPriorityClassifier,
    SQLAlchemyInferenceRepository,
    SQLAlchemyPriorityHistoryRepository,
)
from deskwatch.priority.interfaces import priority_router

# Intake Module
from deskwatch.intake.application import EmailIntakeService
from deskwatch.intake.infrastructure import LLMEmailIntentClassifier, SQLAlchemyQuarantineRepository
from deskwatch.intake.interfaces import intake_router

# SLA Module
from deskwatch.sla.application import ILeaderLock, ShiftReconciliationService, SLATrackingService
from deskwatch.sla.infrastructure import (
    InProcessLeaderLock,
    PostgresAdvisoryLeaderLock,
    ShiftConfigManager,
    ShiftMonitor,
    SQLAlchemySLAEventRepository,
    SQLAlchemyTicketAssignmentRepository,
)
from deskwatch.sla.interfaces import sla_router

# Shared
from deskwatch.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from deskwatch.shared.infrastructure.logging import get_logger, setup_logging
from deskwatch.shared.infrastructure.metrics import GrafanaOTLPExporter

logger = get_logger(__name__)


def build_llm_client(config: Settings) -> Optional[ILLMClient]:
    """Mock client when MOCK_LLM is set, OpenAI when a key is present, else None."""
    if config.mock_llm:
        logger.info("Using mock LLM client")
        return MockLLMClient()
    if config.llm_configured:
        return OpenAILLMClient(config.openai_api_key, base_url=config.openai_base_url)
    logger.info("No LLM configured - classifiers disabled, rules only")
    return None


def wire_services(
    app: FastAPI,
    config: Settings,
    *,
    inference_repository,
    history_repository,
    quarantine_repository,
    event_repository,
    assignment_repository,
    shift_config: ShiftConfigManager,
    leader_lock: ILeaderLock,
    llm_client: Optional[ILLMClient] = None,
    exporter: Optional[GrafanaOTLPExporter] = None,
) -> ShiftReconciliationService:
    """
    Build every application service and publish it on ``app.state``.

    Returns the reconciliation service so the caller can schedule it.
    """
    priority_classifier = None
    intent_classifier = None
    if llm_client is not None:
        priority_classifier = LLMPriorityClassifier(
            llm_client,
            config.priority_classifier_config(),
            provider="mock" if config.mock_llm else "openai",
            exporter=exporter,
        )
        intent_classifier = LLMEmailIntentClassifier(
            llm_client, config.intent_classifier_config(), exporter=exporter
        )

    app.state.settings = config
    app.state.llm_client = llm_client
    app.state.priority_decisions = PriorityDecisionService(
        config.priority_policy(),
        classifier=priority_classifier,
        inference_repository=inference_repository,
        history_repository=history_repository,
    )
    app.state.priority_reviews = PriorityReviewService(inference_repository, history_repository)
    app.state.email_intake = EmailIntakeService(
        config.email_guard_policy(),
        config.intent_policy(),
        classifier=intent_classifier,
        quarantine_repository=quarantine_repository,
    )

    tracking = SLATrackingService(
        event_repository,
        schedule_provider=lambda: shift_config.schedule,
        roster=assignment_repository,
    )
    app.state.shift_config = shift_config
    app.state.sla_tracking = tracking

    reconciliation = ShiftReconciliationService(
        tracking, event_repository, assignment_repository, leader_lock
    )
    app.state.shift_reconciliation = reconciliation
    return reconciliation


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and probe which tables exist
    3. Load and watch the shift configuration
    4. Initialize LLM client and metrics exporter
    5. Wire services into app state
    6. Start the shift monitor

    SHUTDOWN:
    1. Stop the shift monitor and config watcher
    2. Close the LLM client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Deskwatch", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    engine = init_database()

    if settings.auto_create_tables:
        logger.info("Creating database tables")
        try:
            await create_tables(engine)
        except Exception as e:
            # Driver-specific connection errors do not share a base class.
            logger.warning("Could not create tables - running degraded", extra={"error": str(e)})

    capabilities: StorageCapabilities = await probe_capabilities(engine)
    session_factory = get_session_maker()

    logger.info("Loading shift configuration", extra={"path": str(settings.shift_config_path)})
    shift_config = ShiftConfigManager(settings.shift_timezone)
    shift_config.load(settings.shift_config_path)
    shift_config.start_watching()

    if engine.dialect.name == "postgresql":
        leader_lock: ILeaderLock = PostgresAdvisoryLeaderLock(engine)
    else:
        leader_lock = InProcessLeaderLock()

    llm_client = build_llm_client(settings)
    exporter = GrafanaOTLPExporter(
        host=settings.grafana_host,
        api_key=settings.grafana_api_key,
        instance_id=settings.grafana_instance_id,
        service_name=settings.app_name,
        service_version=settings.app_version,
        environment=settings.environment,
    )

    assignments = SQLAlchemyTicketAssignmentRepository(session_factory, capabilities)
    reconciliation = wire_services(
        app,
        settings,
        inference_repository=SQLAlchemyInferenceRepository(session_factory, capabilities),
        history_repository=SQLAlchemyPriorityHistoryRepository(session_factory, capabilities),
        quarantine_repository=SQLAlchemyQuarantineRepository(session_factory, capabilities),
        event_repository=SQLAlchemySLAEventRepository(session_factory, capabilities),
        assignment_repository=assignments,
        shift_config=shift_config,
        leader_lock=leader_lock,
        llm_client=llm_client,
        exporter=exporter,
    )
    app.state.capabilities = capabilities

    monitor = ShiftMonitor(reconciliation, shift_config, interval_seconds=settings.shift_monitor_interval)
    await monitor.start()
    app.state.shift_monitor = monitor

    logger.info("Deskwatch started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Deskwatch")

    await monitor.stop()
    shift_config.stop_watching()

    if llm_client is not None:
        await llm_client.close()

    await close_database()

    logger.info("Deskwatch shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Deskwatch API",
    description="""
    ## Helpdesk Automation Service

    Priority decisions, inbound email screening and shift-aware SLA timers.

    ---

    ### Priority Module

    **Endpoints:**
    - `POST /priority/decide` - Decide a priority from ticket text
    - `POST /priority/inferences/{id}/review` - Approve, override or reject a decision
    - `GET /priority/metrics` - Review queue counters

    **Modes** (`AI_PRIORITY_MODE`): `rules_only`, `llm_only`, `hybrid_llm`, `disabled`

    ---

    ### Intake Module

    **Endpoints:**
    - `POST /intake/assess` - Score an inbound email; quarantines when required
    - `POST /intake/quarantine/{id}/release` - Release into a ticket
    - `POST /intake/quarantine/{id}/dismiss` - Dismiss a quarantined email

    ---

    ### SLA Module

    **Endpoints:**
    - `GET /sla/shift` - Current shift and configured windows
    - `POST /sla/replay` - Summarise an ad-hoc event list
    - `POST /sla/tickets/{id}/events` - Append a timer event
    - `GET /sla/tickets/{id}/summary` - Elapsed in-shift minutes

    **Default shifts:** AM 06-14, PM 14-22, GY 22-06 (wall clock in `SHIFT_TIMEZONE`)

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(LoggingMiddleware)
register_exception_handlers(app)

# === Include Module Routers ===
app.include_router(priority_router)
app.include_router(intake_router)
app.include_router(sla_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "storage": ["ai_inferences", "sla_tracking"],
                        "shift_monitor": "running",
                        "current_shift": "AM",
                        "llm_client": "available"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Missing tables do not make the service unhealthy; the affected endpoints
    answer 503 instead.
    """
    state = request.app.state
    capabilities = getattr(state, "capabilities", None)
    monitor = getattr(state, "shift_monitor", None)
    tracking = getattr(state, "sla_tracking", None)

    checks = {
        "storage": sorted(capabilities.tables) if capabilities else [],
        "shift_monitor": "running" if monitor and monitor.is_running else "stopped",
        "current_shift": tracking.current_shift() if tracking else None,
        "llm_client": "available" if getattr(state, "llm_client", None) else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Deskwatch",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "priority": {"prefix": "/priority"},
            "intake": {"prefix": "/intake"},
            "sla": {"prefix": "/sla"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deskwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )

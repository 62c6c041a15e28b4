"""Gatekeeper FastAPI service: verifies Notion webhooks and relays them onto the event bus."""

import datetime
from contextlib import asynccontextmanager

import newrelic.agent
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request

from notion_relay.eventbus.bus import EventBus, InMemoryEventBus
from notion_relay.eventbus.router import EventRouter
from notion_relay.eventbus.sqs import SQSEventBus
from notion_relay.gatekeeper.errors import WebhookError
from notion_relay.gatekeeper.events import IdGenerator, UUIDGenerator
from notion_relay.gatekeeper.publisher import WebhookEventPublisher
from notion_relay.gatekeeper.routes import router as webhook_router
from notion_relay.gatekeeper.routes import webhook_error_handler
from notion_relay.gatekeeper.webhook_handlers import NotionWebhookIngestor
from notion_relay.jobs.event_worker import handle_bus_message
from notion_relay.utils.config import RelaySettings, get_config_value_str, load_settings
from notion_relay.utils.logging import get_logger, get_uvicorn_log_config

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


def build_event_bus(settings: RelaySettings) -> EventBus:
    """Create the bus backend selected by EVENT_BUS_BACKEND."""
    if settings.event_bus_backend == "sqs":
        # load_settings guarantees the queue ARN for the sqs backend
        return SQSEventBus({settings.notion_webhook_topic: settings.notion_webhook_queue_arn or ""})
    return InMemoryEventBus()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the in-process event router (memory backend) and close the bus on shutdown."""
    logger.info("🚀 Starting Gatekeeper service...")

    event_router: EventRouter | None = app.state.event_router
    if event_router is not None:
        event_router.start()

    logger.info("✅ Gatekeeper service startup complete")

    yield

    logger.info("🛑 Shutting down Gatekeeper service...")

    if event_router is not None:
        await event_router.stop()
    await app.state.event_bus.close()

    logger.info("✅ Gatekeeper service shutdown complete")


def create_app(
    settings: RelaySettings | None = None,
    event_bus: EventBus | None = None,
    id_generator: IdGenerator | None = None,
    start_event_router: bool = True,
) -> FastAPI:
    """Build the gatekeeper app.

    Args:
        settings: Configuration snapshot, loaded from the environment when omitted
        event_bus: Bus to publish to, built from settings when omitted
        id_generator: Event id source, UUIDGenerator when omitted
        start_event_router: Consume the topic in-process when the bus is an InMemoryEventBus
    """
    settings = settings or load_settings()
    event_bus = event_bus or build_event_bus(settings)

    if not settings.has_webhook_secret:
        logger.warning(
            "⚠️ NOTION_WEBHOOK_SECRET is not set. Every Notion webhook will be rejected with a 500."
        )

    publisher = WebhookEventPublisher(event_bus, settings.notion_webhook_topic)
    ingestor = NotionWebhookIngestor(
        secret=settings.notion_webhook_secret,
        publisher=publisher,
        id_generator=id_generator or UUIDGenerator(),
    )

    event_router: EventRouter | None = None
    if start_event_router and isinstance(event_bus, InMemoryEventBus):
        event_router = EventRouter(event_bus)
        event_router.add_handler(
            "notion_webhook_logger", settings.notion_webhook_topic, handle_bus_message
        )

    app = FastAPI(
        title="Notion Webhook Relay",
        description="Verifies Notion webhook signatures and relays notifications to the event bus",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.event_bus = event_bus
    app.state.event_router = event_router
    app.state.notion_ingestor = ingestor

    app.add_exception_handler(WebhookError, webhook_error_handler)
    app.include_router(webhook_router, prefix=API_PREFIX)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint, 503 if the event bus is unhealthy."""
        try:
            bus_health = await request.app.state.event_bus.health_check()
        except Exception as e:
            newrelic.agent.record_exception()
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=503, detail={"status": "unhealthy", "error": str(e)})

        health_status = {
            "status": bus_health.get("status", "unhealthy"),
            "components": {
                "event_bus": bus_health,
                "webhook_secret": "configured" if settings.has_webhook_secret else "missing",
            },
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "version": app.version,
        }

        if health_status["status"] != "healthy":
            raise HTTPException(status_code=503, detail=health_status)
        return health_status

    @app.get("/health/live")
    async def liveness_check():
        """Liveness probe endpoint - only fails if the process is completely broken."""
        return {"status": "alive", "timestamp": datetime.datetime.now(datetime.UTC).isoformat()}

    @app.get("/health/ready")
    async def readiness_check(request: Request):
        """Readiness probe endpoint - ready once the bus is reachable and a secret is configured."""
        bus_health = await request.app.state.event_bus.health_check()
        ready = bus_health.get("status") == "healthy" and settings.has_webhook_secret
        if not ready:
            raise HTTPException(
                status_code=503,
                detail={
                    "status": "not_ready",
                    "event_bus": bus_health,
                    "webhook_secret": "configured" if settings.has_webhook_secret else "missing",
                },
            )
        return {"status": "ready"}

    return app


def _initialize_newrelic(environment: str) -> None:
    if get_config_value_str("NEW_RELIC_LICENSE_KEY"):
        newrelic.agent.initialize(environment=environment)


def main() -> None:
    """Run the gatekeeper service."""
    import uvicorn

    load_dotenv()
    settings = load_settings()
    _initialize_newrelic(settings.environment)

    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    main()

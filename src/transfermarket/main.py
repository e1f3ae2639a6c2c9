"""Main application entrypoint for the Transfer Market NLQ service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from transfermarket.api.v1 import routes_health
from transfermarket.api.v1.routes_nlq import router as nlq_router
from transfermarket.core.config import settings
from transfermarket.core.logging import setup_logging
from transfermarket.nlq.model_client import ModelClient
from transfermarket.nlq.orchestrator import NlqOrchestrator
from transfermarket.nlq.query_engine import QueryExecutor
from transfermarket.nlq.schema_context import get_schema_card
from transfermarket.store import get_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # No request can be answered without the schema card; SchemaUnavailable
    # propagates and aborts startup.
    schema_card = get_schema_card()
    app.state.orchestrator = NlqOrchestrator(
        schema_card=schema_card,
        model_client=ModelClient(),
        executor=QueryExecutor(get_store()),
    )
    logger.info(
        "NLQ pipeline ready",
        extra={"tables": schema_card.table_names, "model": settings.MODEL_NAME},
    )
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Initialize logging first
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(nlq_router, tags=["nlq"])

    return app


# Export app instance for ASGI servers
app = create_app()

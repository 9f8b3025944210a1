"""
Chat Widget Engine
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient

from widget_engine.core.config import Settings, get_settings
from widget_engine.routers import widget
from widget_engine.services.durable_store import DurableStore
from widget_engine.services.inference_client import InferenceClient
from widget_engine.services.registry import WidgetRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting Chat Widget Engine...")
    mongo_client: Optional[AsyncIOMotorClient] = None
    if settings.mongo_url:
        mongo_client = AsyncIOMotorClient(settings.mongo_url)
        app.state.store = DurableStore(mongo_client, settings)
        logger.info(f"Durable store configured ({settings.mongo_db_name})")
    else:
        app.state.store = None
        logger.warning("MONGO_URL not set - all widget sessions will be ephemeral")

    app.state.inference = InferenceClient(settings)
    app.state.registry = WidgetRegistry()
    logger.info(f"Chat Widget Engine {settings.app_version} is ready")

    yield

    # Shutdown
    logger.info("Shutting down Chat Widget Engine...")
    for controller in app.state.registry.drain():
        await controller.aclose()
    if mongo_client:
        mongo_client.close()
    logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Resilient conversational widget engine. Opens chat sessions, relays "
            "messages to the inference service and degrades gracefully."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, specify exact domains
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(widget.router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Detailed health check with dependencies."""
        store: Optional[DurableStore] = getattr(request.app.state, "store", None)

        if store is None:
            mongo_status = "not configured"
        else:
            try:
                await store.ping()
                mongo_status = "connected"
            except Exception as e:
                mongo_status = f"error: {str(e)}"

        registry = getattr(request.app.state, "registry", None)
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "status": "healthy",
            "active_widgets": len(registry) if registry is not None else 0,
            "dependencies": {
                "mongodb": mongo_status,
                "inference_url": settings.inference_url,
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "widget_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info"
    )

from typing import Optional

import httpx
from fastapi import FastAPI
from app.api.endpoints import upload, processing, images
from app.core.config import Settings, settings
from app.core.logging_config import setup_logging
from loguru import logger
from app.core.middleware import log_request_middleware, setup_exception_handlers
from app.services.image_fetcher import ImageFetcher
from app.services.image_store import LocalImageStore
from app.services.ingestion import IngestionOrchestrator
from app.services.request_builder import RequestBuilder
from app.services.request_repository import (
    InMemoryRequestRepository,
    JsonFileRequestRepository,
    RequestRepository,
)
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware

# Initialize Logging
setup_logging()


def build_repository(app_settings: Settings) -> RequestRepository:
    if app_settings.PERSISTENCE_BACKEND == "memory":
        return InMemoryRequestRepository()
    return JsonFileRequestRepository(app_settings.REQUESTS_DIR)


def create_app(
    app_settings: Settings = settings,
    repository: Optional[RequestRepository] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        version=app_settings.VERSION,
        description="Batch product image ingestion: CSV manifest in, compressed JPEGs and one persisted request out."
    )

    # Explicit handles; no process-wide state beyond app.state
    app.state.settings = app_settings
    app.state.image_store = LocalImageStore(app_settings.COMPRESSED_DIR, app_settings.PUBLIC_BASE_URL)
    app.state.repository = repository if repository is not None else build_repository(app_settings)

    # Add Middleware
    app.add_middleware(BaseHTTPMiddleware, dispatch=log_request_middleware)
    setup_exception_handlers(app)

    # Add CORS last so it runs first (outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {
            "app": app_settings.PROJECT_NAME,
            "version": app_settings.VERSION,
            "status": "online"
        }

    # Include Routers
    app.include_router(upload.router, prefix=app_settings.API_V1_STR, tags=["Upload"])
    app.include_router(processing.router, prefix=app_settings.API_V1_STR, tags=["Processing"])
    app.include_router(images.router, prefix="/compressed", tags=["Images"])

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {app_settings.PROJECT_NAME}...")
        app.state.http_client = httpx.AsyncClient(
            timeout=app_settings.FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
            transport=transport,
        )
        fetcher = ImageFetcher(
            app.state.http_client,
            app.state.image_store,
            timeout=app_settings.FETCH_TIMEOUT_SECONDS,
            max_bytes=app_settings.MAX_IMAGE_BYTES,
            quality=app_settings.JPEG_QUALITY,
            max_concurrency=app_settings.MAX_CONCURRENT_FETCHES,
        )
        builder = RequestBuilder(
            app.state.repository,
            max_attempts=app_settings.PERSIST_MAX_ATTEMPTS,
            retry_delay=app_settings.PERSIST_RETRY_DELAY_SECONDS,
        )
        app.state.orchestrator = IngestionOrchestrator(
            fetcher, builder, chunk_size=app_settings.MANIFEST_CHUNK_SIZE
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.http_client.aclose()
        logger.info(f"Stopped {app_settings.PROJECT_NAME}.")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT, reload=True)

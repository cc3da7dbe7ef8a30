import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.modpacks import router as modpacks_router
from app.core.config import get_log_level
from app.core.dependencies import get_config, get_content_dir, get_metadata_store
from app.domain.errors import ModpackHubError

# Configure logging
logging.basicConfig(
    level=get_log_level(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Build the FastAPI application.

    Configuration and the data directory are resolved when this is called,
    so tests can point MODPACK_HUB_DATA_DIR somewhere else first.
    """
    app = FastAPI(
        title="Modpack Hub",
        version="0.1.0",
        description="Upload modpack archives and manage the metadata derived from their manifests.",
    )

    config = get_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ModpackHubError)
    async def modpack_hub_error_handler(request: Request, exc: ModpackHubError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.kind, "message": exc.message},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        """
        Resolve the data directory and open the metadata store so an
        unusable data directory fails at startup instead of on first request.
        """
        store = get_metadata_store()
        logger.info(f"Metadata document: {store.metadata_path}")

    @app.get("/health")
    async def health() -> dict:
        """
        Lightweight health check endpoint.
        """
        return {"status": "ok"}

    app.include_router(modpacks_router, prefix="/api", tags=["modpacks"])

    # Stored archives are downloadable under /downloads/modpacks/<filename>
    app.mount("/downloads/modpacks", StaticFiles(directory=get_content_dir()), name="modpacks")

    return app


app = create_app()


if __name__ == "__main__":
    """
    Allow running `python app/main.py` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=3001,
        reload=True,
    )

"""
Plugin Studio Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import PluginStudioError, describe_error
from .logging_utils import configure_logging, verbosity_from_env
from .routers import assist, config, patches, workspace
from .services.assistant import PluginAssistant
from .services.config_manager import ConfigManager
from .services.llm_service import LLMService
from .services.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)


def create_app(config_dir: str | None = None) -> FastAPI:
    """Build the application; services are created once per process in the lifespan"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - startup and shutdown logic"""
        logger.info("[Backend] Starting Plugin Studio Backend...")
        config_manager = ConfigManager(config_dir)
        store = WorkspaceStore(config_manager.config_dir)
        llm_service = LLMService(config_manager)

        app.state.config_manager = config_manager
        app.state.workspace_store = store
        app.state.llm_service = llm_service
        app.state.assistant = PluginAssistant(llm_service, config_manager, store)
        logger.info("[Backend] Config directory: %s", config_manager.config_dir)

        yield
        logger.info("[Backend] Shutting down Plugin Studio Backend...")

    app = FastAPI(
        title="Plugin Studio Backend",
        description="AI-assisted authoring and safe patching for Rust server plugins",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for the local editor front end
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PluginStudioError)
    async def plugin_studio_error_handler(request: Request, exc: PluginStudioError):
        status_code, message = describe_error(exc)
        logger.error("[Backend] %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": message})

    # Include routers
    app.include_router(assist.router, prefix="/api/assist", tags=["assist"])
    app.include_router(patches.router, prefix="/api/patches", tags=["patches"])
    app.include_router(config.router, prefix="/api/config", tags=["config"])
    app.include_router(workspace.router, prefix="/api/workspace", tags=["workspace"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "plugin-studio-backend"}

    return app


app = create_app()


def run():
    """Console entry point"""
    import uvicorn

    configure_logging(verbosity_from_env())
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    run()

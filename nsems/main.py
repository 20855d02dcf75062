# =======================================================================================
# nsems/main.py - FastAPI Application Entry Points
# =======================================================================================
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import Config, config as default_config
from .api.routes.scanner import router as scanner_router
from .api.routes.holders import router as holders_router
from .api.routes.scan import router as scan_router
from .api.routes.sync import router as sync_router
from .models.schemas import HealthResponse
from .runtime import AuthorityRuntime, DeviceRuntime, build_authority, build_device


def configure_logging(cfg: Config) -> None:
    logging.basicConfig(
        level=logging.DEBUG if cfg.API_DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _add_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_authority_app(cfg: Optional[Config] = None, runtime: Optional[AuthorityRuntime] = None) -> FastAPI:
    cfg = cfg or default_config
    runtime = runtime or build_authority(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.getLogger(__name__).info("Authority API started")
        yield
        runtime.stop()

    app = FastAPI(
        title="NSEMS Authority API",
        version="1.0.0",
        description="Canonical secrets, token verification and event log",
        debug=cfg.API_DEBUG,
        lifespan=lifespan,
    )
    app.state.authority = runtime
    _add_cors(app)

    # Routers
    app.include_router(scanner_router, prefix="/api", tags=["scanner"])
    app.include_router(holders_router, prefix="/api", tags=["holders"])

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def api_health():
        try:
            runtime.db.fetch_one("SELECT 1")
            return HealthResponse(status="ok", dataAvailable=True, message=None)
        except Exception as e:
            return HealthResponse(status="error", dataAvailable=False, message=str(e))

    return app


def create_device_app(cfg: Optional[Config] = None, runtime: Optional[DeviceRuntime] = None) -> FastAPI:
    cfg = cfg or default_config
    runtime = runtime or build_device(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime.start()
        logging.getLogger(__name__).info("Scan point %s started", cfg.SCANNER_ID)
        yield
        runtime.stop()

    app = FastAPI(
        title="NSEMS Scan Point API",
        version="1.0.0",
        description="Offline-first token verification for a single scan point",
        debug=cfg.API_DEBUG,
        lifespan=lifespan,
    )
    app.state.device = runtime
    _add_cors(app)

    app.include_router(scan_router, prefix="/api", tags=["scan"])
    app.include_router(sync_router, prefix="/api", tags=["sync"])

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def api_health():
        online = runtime.connectivity.is_online
        return HealthResponse(
            status="ok" if online else "offline",
            dataAvailable=runtime.cache.count() > 0 or online,
            message=None,
        )

    return app


def authority_app() -> FastAPI:
    """ASGI factory: ``uvicorn nsems.main:authority_app --factory``."""
    configure_logging(default_config)
    return create_authority_app(default_config)


def device_app() -> FastAPI:
    """ASGI factory: ``uvicorn nsems.main:device_app --factory``."""
    configure_logging(default_config)
    return create_device_app(default_config)


def _serve(factory: str) -> None:
    uvicorn.run(
        f"nsems.main:{factory}",
        factory=True,
        host=default_config.API_HOST,
        port=default_config.API_PORT,
        reload=default_config.API_DEBUG,
    )


def run_authority() -> None:
    """Console entry point: serve the authority on API_HOST:API_PORT."""
    _serve("authority_app")


def run_device() -> None:
    """Console entry point: serve a scan point on API_HOST:API_PORT."""
    _serve("device_app")

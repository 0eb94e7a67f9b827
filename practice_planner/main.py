"""
Entry point for the practice planner service.

    SNOWFLAKE_MOCK_MODE=true uvicorn practice_planner.main:app --reload

Live updates travel over an event bus held in this process, so deploy a
single worker; a second worker would never see the first one's events.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import events, health, practices, sets
from .config.settings import get_settings

logging.basicConfig(
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Plan the rounds of a club practice: which dogs run together, where, and
in what order.

Set edits arrive as batches that commit or fail as a whole. Round numbers
stay contiguous and aligned across a practice's locations, and every
committed change is pushed to open event streams.

Send the API key as `X-API-Key` and the acting user as `X-User-Id`.
"""

# (router module, mount point, docs tag)
ROUTERS = (
    (health, "/health", "Health"),
    (practices, "/api/v1/practices", "Practices"),
    (sets, "/api/v1/sets", "Sets"),
    (events, "/api/v1/events", "Events"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Starting practice planner",
        extra={"version": __version__, "snowflake_mock_mode": settings.snowflake_mock_mode},
    )
    missing = settings.validate_required_fields()
    if missing:
        # Keep serving; /health/ready reports the gap.
        logger.error("Configuration incomplete", extra={"missing_fields": missing})

    yield

    logger.info("Practice planner stopped")


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """Log anything the routes did not map and hide the details from the caller."""
    logger.error(
        "Unhandled error",
        extra={"method": request.method, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Build an app from the current settings. Tests build their own."""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=API_DESCRIPTION,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module, prefix, tag in ROUTERS:
        app.include_router(module.router, prefix=prefix, tags=[tag])

    app.add_exception_handler(Exception, _unhandled_error)

    @app.get("/", include_in_schema=False)
    async def index():
        return {"service": settings.api_title, "version": __version__, "docs": app.docs_url}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "practice_planner.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=get_settings().log_level.lower(),
    )

import logging
from pathlib import Path

# Third-party
from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from notesync import __version__
from notesync.config import get_settings
from notesync.constants import API_PREFIX
from notesync.constants import CATEGORIES_PREFIX
from notesync.constants import NOTES_PREFIX
from notesync.constants import SYNC_PREFIX
from notesync.constants import UPLOADS_MOUNT
from notesync.database import initialize_database
from notesync.errors import NoteSyncError
from notesync.routers.auth import router as auth_router
from notesync.routers.categories import router as categories_router
from notesync.routers.notes import router as notes_router
from notesync.routers.sync import router as sync_router
from notesync.routers.system import router as system_router
from notesync.routers.users import router as users_router

_settings = get_settings()

# --------------------------------------------------------------------------
# LOGGING CONFIGURATION
# --------------------------------------------------------------------------
#
# - Default log level: INFO
# - Can be set at runtime with LOG_LEVEL env (e.g. LOG_LEVEL=WARNING for CI)
#
_log_level = getattr(logging, _settings.log_level.upper(), logging.INFO)
logging.basicConfig(level=_log_level, format="%(levelname)s - %(message)s", handlers=[logging.StreamHandler()])

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------

# `StaticFiles` raises if the directory is missing, so create it on import.
UPLOADS_DIR = Path(_settings.upload_dir)
UPLOADS_DIR.mkdir(parents=True, exist_ok=True)

app = FastAPI(title="NoteSync API", version=__version__, redirect_slashes=True)

# ------------------------------------------------------------------
# CORS – open wildcard in dev bypass mode, restricted otherwise unless env
# overrides it.  `ALLOWED_CORS_ORIGINS` can contain a comma-separated list.
# ------------------------------------------------------------------

if _settings.auth_disabled:
    cors_origins = ["*"]
else:
    cors_origins_env = _settings.allowed_cors_origins
    if cors_origins_env.strip():
        cors_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()]
    else:
        cors_origins = ["http://localhost:3000"]


# ---------------------------------------------------------------------------
# Error mapping – service-layer exceptions carry their own status code
# ---------------------------------------------------------------------------


@app.exception_handler(NoteSyncError)
async def notesync_error_handler(request: Request, exc: NoteSyncError):
    """Render a domain error as ``{"detail": message}`` with its status."""

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def ensure_cors_on_errors(request: Request, exc: Exception):
    """Ensure CORS headers are included even in error responses."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    origin = request.headers.get("origin", "*")

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers={
            "Access-Control-Allow-Origin": origin
            if origin in cors_origins or "*" in cors_origins
            else cors_origins[0]
            if cors_origins
            else "*",
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": "*",
            "Access-Control-Allow-Headers": "*",
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded note images
app.mount(UPLOADS_MOUNT, StaticFiles(directory=str(UPLOADS_DIR)), name="uploads")

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(notes_router, prefix=f"{API_PREFIX}{NOTES_PREFIX}")
app.include_router(categories_router, prefix=f"{API_PREFIX}{CATEGORIES_PREFIX}")
app.include_router(sync_router, prefix=f"{API_PREFIX}{SYNC_PREFIX}")
app.include_router(system_router, prefix=API_PREFIX)


@app.on_event("startup")
async def startup_event():
    """Create DB tables if they don't exist."""
    initialize_database()
    logger.info("Database tables initialized")


# Root endpoint
@app.get("/")
async def read_root():
    """Return a simple message to indicate the API is working."""
    return {"message": "NoteSync API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

# facepipe/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from facepipe.core.config import get_settings
from facepipe.core.errors import (
    FaceUploadError,
    boundary_http_exception_handler,
    boundary_validation_error_handler,
    face_upload_error_handler,
)
from facepipe.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from facepipe.models import player as _player_models  # noqa: F401
from facepipe.models import profile as _profile_models  # noqa: F401
from facepipe.models import upload_log as _upload_log_models  # noqa: F401

# Routers
from facepipe.routers.profiles import router as profiles_router
from facepipe.routers.process_face import router as process_face_router
from facepipe.routers.admin import router as admin_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("🔄 Startup: Connecting to database...")
    try:
        create_db_and_tables()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "Face Upload Pipeline",
    version="0.1.0",
    lifespan=lifespan,
)

# Pipeline failures -> {ok: false, error, code}
app.add_exception_handler(FaceUploadError, face_upload_error_handler)
# ...and so do auth and validation failures on the processing function
app.add_exception_handler(StarletteHTTPException, boundary_http_exception_handler)
app.add_exception_handler(RequestValidationError, boundary_validation_error_handler)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(profiles_router, prefix=settings.API_V1_STR)
app.include_router(admin_router, prefix=settings.API_V1_STR)

# Processing function keeps the Supabase Functions path
app.include_router(process_face_router)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "facepipe"}

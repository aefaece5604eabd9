# facepipe/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (storage writes + processing function auth)
      - FACE_BUCKET (defaults to "user-faces")
      - PROCESS_FACE_FUNCTION (edge function name, defaults to "process-face")
      - STALE_UPLOAD_MINUTES (age after which a pending upload is reconciled)
    """

    PROJECT_NAME: str = "Face Upload Pipeline"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Storage bucket holding both raw uploads and processed faces
    FACE_BUCKET: str = "user-faces"

    # Edge function invoked for server-side processing
    PROCESS_FACE_FUNCTION: str = "process-face"

    # Pending uploads older than this are resolved to "rejected" by reconcile
    STALE_UPLOAD_MINUTES: int = 15

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()

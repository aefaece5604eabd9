# facepipe/schemas/upload_log.py
import uuid
from datetime import datetime
from typing import Literal

from sqlmodel import SQLModel

UploadOutcome = Literal["pending", "accepted", "rejected", "flagged"]


class UploadLogRead(SQLModel):
    """Audit row as returned to players and admins."""

    id: uuid.UUID
    upload_id: str
    user_id: uuid.UUID
    raw_path: str
    processed_path: str | None
    face_version: int | None
    outcome: UploadOutcome
    reason: str | None
    file_size: int | None
    mime_type: str | None
    ip_address: str | None
    created_at: datetime
    updated_at: datetime


class ReconcileResult(SQLModel):
    """Counts of rows resolved by one reconciliation pass."""

    logs_rejected: int
    profiles_rejected: int

# facepipe/schemas/profile.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

from facepipe.schemas.face import FaceMeta

FaceState = Literal["none", "pending", "approved", "rejected", "flagged"]

# States an operator may put a profile into by hand
ModerationState = Literal["flagged", "rejected", "none"]


class ProfileRead(SQLModel):
    """Profile representation for clients."""

    id: uuid.UUID
    user_id: uuid.UUID
    face_path: str | None
    face_url: str | None
    face_version: int
    face_state: FaceState
    face_meta: FaceMeta
    upload_count_today: int
    last_upload_reset: datetime
    updated_at: datetime


class UploadLimitRead(SQLModel):
    """Result of the quota check."""

    allowed: bool
    remaining: int


class FaceStateUpdate(SQLModel):
    """
    Admin-only moderation payload.

    "approved" is intentionally absent: a face only becomes approved
    through processing.
    """

    model_config = ConfigDict(extra="forbid")

    state: ModerationState
    reason: str | None = None

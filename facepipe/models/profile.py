# facepipe/models/profile.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import SQLModel, Field

# Processed faces are always square at this size
FACE_OUTPUT_SIZE = 512


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_face_meta() -> dict[str, Any]:
    """Transform parameters of a profile that never uploaded a face."""
    return {
        "width": FACE_OUTPUT_SIZE,
        "height": FACE_OUTPUT_SIZE,
        "scale": 1.0,
        "rotation": 0,
        "offsetX": 0,
        "offsetY": 0,
    }


class Profile(SQLModel, table=True):
    """
    Per-player face asset state.

    Invariants:
      - exactly one row per user_id (unique)
      - face_version only increases
      - face_path / face_url are set iff face_state == "approved"
      - upload_count_today only goes back to 0 when the 24h window
        anchored at last_upload_reset rolls over
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="players.id",
        unique=True,
        index=True,
    )

    face_path: str | None = Field(
        default=None,
        description="Storage key of the active processed face",
    )

    face_url: str | None = Field(
        default=None,
        description="Public URL mirroring face_path",
    )

    face_version: int = Field(
        default=0,
        ge=0,
        description="Bumped by every approved upload",
    )

    # none | pending | approved | rejected | flagged
    face_state: str = Field(
        default="none",
        index=True,
    )

    face_meta: dict[str, Any] = Field(
        default_factory=default_face_meta,
        sa_type=JSON,
        description="width, height, scale, rotation, offsetX, offsetY",
    )

    upload_count_today: int = Field(
        default=0,
        ge=0,
        description="Uploads started in the current 24h window",
    )

    last_upload_reset: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        description="Start of the current 24h quota window",
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
    )

    @classmethod
    def default_for(cls, user_id: uuid.UUID) -> "Profile":
        """
        The profile a user has before any row exists: no face, version 0,
        empty quota window starting now.
        """
        return cls(user_id=user_id)

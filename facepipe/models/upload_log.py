# facepipe/models/upload_log.py
import uuid
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from facepipe.models.profile import utcnow


class FaceUploadLog(SQLModel, table=True):
    """
    Audit row for one upload attempt.

    Created as "pending" before the raw blob is referenced anywhere else,
    then finalized exactly once:

      pending -> accepted | rejected | flagged

    upload_id joins the raw phase (orchestrator) and the final phase
    (processing function).
    """

    __tablename__ = "face_upload_logs"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    upload_id: str = Field(
        unique=True,
        index=True,
        description="Caller-generated idempotency key of the attempt",
    )

    user_id: uuid.UUID = Field(
        foreign_key="players.id",
        index=True,
    )

    raw_path: str = Field(
        description="Storage key of the raw upload",
    )

    processed_path: str | None = Field(
        default=None,
        description="Storage key of the processed face (accepted only)",
    )

    face_version: int | None = Field(
        default=None,
        description="Profile version produced by this attempt (accepted only)",
    )

    # pending | accepted | rejected | flagged
    outcome: str = Field(
        default="pending",
        index=True,
    )

    reason: str | None = Field(
        default=None,
        description="Why the attempt was not accepted",
    )

    file_size: int | None = None
    mime_type: str | None = None
    ip_address: str | None = None

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        index=True,
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
    )

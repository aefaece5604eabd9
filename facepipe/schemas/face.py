# facepipe/schemas/face.py
import uuid
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class FaceMetaInput(SQLModel):
    """
    Transform parameters produced by the crop-and-zoom editor.

    Every field is optional; missing ones are filled with defaults
    during processing. Geometry is cosmetic and trusted as sent.
    """

    model_config = ConfigDict(extra="forbid")

    scale: float | None = None
    rotation: float | None = None
    offsetX: float | None = None
    offsetY: float | None = None


class FaceMeta(SQLModel):
    """Normalized transform stored on the profile."""

    width: int
    height: int
    scale: float
    rotation: float
    offsetX: float
    offsetY: float


class ProcessFaceRequest(SQLModel):
    """
    Body of the process-face call.

    Wire format:
        {user_id, raw_path, upload_id, face_meta?}
    """

    model_config = ConfigDict(extra="forbid")

    user_id: uuid.UUID
    raw_path: str = Field(min_length=1)
    upload_id: str = Field(min_length=1)
    face_meta: FaceMetaInput | None = None


class ProcessFaceResponse(SQLModel):
    """Success body of the process-face call."""

    ok: Literal[True] = True
    face_url: str
    face_version: int
    state: Literal["approved"] = "approved"
    meta: FaceMeta


class FaceUploadResult(ProcessFaceResponse):
    """What the upload endpoint returns to the player."""

    upload_id: str


class ErrorResponse(SQLModel):
    """Failure body shared by the upload endpoint and process-face."""

    ok: Literal[False] = False
    error: str
    code: str

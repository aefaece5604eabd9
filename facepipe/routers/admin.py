# facepipe/routers/admin.py
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlmodel import Session

from facepipe.core.auth import require_admin
from facepipe.core.config import get_settings
from facepipe.database import get_session
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.profile import FaceStateUpdate, ProfileRead
from facepipe.schemas.upload_log import ReconcileResult, UploadLogRead, UploadOutcome
from facepipe.services.profile_service import ProfileService
from facepipe.services.upload_log_service import UploadLogService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

profile_repo = ProfileRepository()
log_repo = UploadLogRepository()
profile_service = ProfileService(profile_repo)
log_service = UploadLogService(log_repo, profile_repo)


@router.get("/uploads", response_model=list[UploadLogRead])
def list_uploads(
    session: Session = Depends(get_session),
    user_id: uuid.UUID | None = None,
    outcome: UploadOutcome | None = None,
    skip: int = 0,
    limit: int = 50,
):
    """
    Audit trail of upload attempts (admin only), newest first.

    Optional filters: user_id, outcome.
    """
    return log_service.list_logs(
        session, user_id=user_id, outcome=outcome, skip=skip, limit=limit
    )


@router.get("/uploads/{upload_id}", response_model=UploadLogRead)
def get_upload(
    upload_id: str,
    session: Session = Depends(get_session),
):
    """Single upload attempt by its upload_id (admin only)."""
    return log_service.get_log(session, upload_id)


@router.post("/uploads/reconcile", response_model=ReconcileResult)
def reconcile_uploads(session: Session = Depends(get_session)):
    """
    Resolve uploads stuck in "pending" (admin only).

    - pending logs older than STALE_UPLOAD_MINUTES -> rejected
    - pending profiles with no pending log left     -> rejected
    """
    stale_after = timedelta(minutes=get_settings().STALE_UPLOAD_MINUTES)
    return log_service.reconcile(session, stale_after)


@router.patch("/profiles/{user_id}/face-state", response_model=ProfileRead)
def moderate_face(
    user_id: uuid.UUID,
    payload: FaceStateUpdate,
    session: Session = Depends(get_session),
):
    """
    Flag, reject or clear a player's face (admin only).

    Flagged and rejected faces are no longer served.
    """
    return profile_service.moderate(session, user_id, payload)

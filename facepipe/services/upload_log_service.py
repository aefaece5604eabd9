# facepipe/services/upload_log_service.py
import logging
import uuid
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlmodel import Session

from facepipe.models.profile import utcnow
from facepipe.models.upload_log import FaceUploadLog
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.upload_log import ReconcileResult
from facepipe.services.face_state import apply_state

logger = logging.getLogger(__name__)

PROCESSING_TIMED_OUT = "processing timed out"


class UploadLogService:
    """
    Audit trail queries and the reconciliation pass.

    Reconciliation resolves the anomalies the non-transactional upload
    sequence can leave behind:
      - logs stuck in "pending" longer than the stale timeout
        -> "rejected" ("processing timed out")
      - profiles stuck in "pending" with no pending log left
        -> "rejected"
    """

    def __init__(self, log_repo: UploadLogRepository, profile_repo: ProfileRepository):
        self.log_repo = log_repo
        self.profile_repo = profile_repo

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[FaceUploadLog]:
        return self.log_repo.list_logs(session, user_id=user_id, skip=skip, limit=limit)

    def list_logs(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        outcome: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[FaceUploadLog]:
        return self.log_repo.list_logs(
            session, user_id=user_id, outcome=outcome, skip=skip, limit=limit
        )

    def get_log(self, session: Session, upload_id: str) -> FaceUploadLog:
        log = self.log_repo.get_by_upload_id(session, upload_id)
        if not log:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Upload not found",
            )
        return log

    def reconcile(
        self,
        session: Session,
        stale_after: timedelta,
        now: datetime | None = None,
    ) -> ReconcileResult:
        now = now or utcnow()
        cutoff = now - stale_after

        logs_rejected = 0
        for log in self.log_repo.list_pending_before(session, cutoff):
            if self.log_repo.finalize(
                session, log.upload_id, "rejected", reason=PROCESSING_TIMED_OUT
            ):
                logs_rejected += 1
                logger.warning(f"Reconciled stale upload {log.upload_id} -> rejected")

        profiles_rejected = 0
        for profile in self.profile_repo.list_by_state(session, "pending"):
            if self.log_repo.count_pending_for_user(session, profile.user_id):
                continue
            apply_state(profile, "rejected")
            self.profile_repo.update(session, profile)
            profiles_rejected += 1
            logger.warning(f"Reconciled pending profile of user {profile.user_id} -> rejected")

        return ReconcileResult(
            logs_rejected=logs_rejected,
            profiles_rejected=profiles_rejected,
        )

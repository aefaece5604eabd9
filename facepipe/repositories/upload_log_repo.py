# facepipe/repositories/upload_log_repo.py
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlmodel import Session, func, select

from facepipe.models.profile import utcnow
from facepipe.models.upload_log import FaceUploadLog


class UploadLogRepository:
    """
    Data access layer for FaceUploadLog.

    - Pure DB operations, one commit per call.
    - Finalizing only ever touches rows that are still "pending".
    """

    def get_by_upload_id(self, session: Session, upload_id: str) -> FaceUploadLog | None:
        stmt = select(FaceUploadLog).where(FaceUploadLog.upload_id == upload_id)
        return session.exec(stmt).first()

    def list_logs(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        outcome: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[FaceUploadLog]:
        stmt = select(FaceUploadLog)
        if user_id is not None:
            stmt = stmt.where(FaceUploadLog.user_id == user_id)
        if outcome is not None:
            stmt = stmt.where(FaceUploadLog.outcome == outcome)
        stmt = stmt.order_by(FaceUploadLog.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_pending_before(self, session: Session, cutoff: datetime) -> list[FaceUploadLog]:
        stmt = (
            select(FaceUploadLog)
            .where(FaceUploadLog.outcome == "pending")
            .where(FaceUploadLog.created_at < cutoff)
        )
        return session.exec(stmt).all()

    def count_pending_for_user(self, session: Session, user_id: uuid.UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(FaceUploadLog)
            .where(FaceUploadLog.user_id == user_id)
            .where(FaceUploadLog.outcome == "pending")
        )
        return session.exec(stmt).one()

    def create(self, session: Session, log: FaceUploadLog) -> FaceUploadLog:
        session.add(log)
        session.commit()
        session.refresh(log)
        return log

    def finalize(
        self,
        session: Session,
        upload_id: str,
        outcome: str,
        **fields: Any,
    ) -> bool:
        """
        Move a pending log to its final outcome.

        Extra keyword arguments are written alongside (reason,
        processed_path, face_version, file_size, mime_type).

        Returns:
            True if a pending row was finalized, False if the row was
            missing or already final (outcome never moves backward).
        """
        stmt = (
            update(FaceUploadLog)
            .where(FaceUploadLog.upload_id == upload_id)
            .where(FaceUploadLog.outcome == "pending")
            .values(outcome=outcome, updated_at=utcnow(), **fields)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount == 1

# facepipe/services/processing_service.py
import logging
from typing import Any

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from facepipe.core.errors import AdmissionError, AssetStoreError, ProcessingRejection
from facepipe.core.storage_utils import SupabaseAssetStore, processed_face_path
from facepipe.models.profile import FACE_OUTPUT_SIZE
from facepipe.models.upload_log import FaceUploadLog
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.face import (
    FaceMeta,
    FaceMetaInput,
    ProcessFaceRequest,
    ProcessFaceResponse,
)
from facepipe.services.admission import CANONICAL_CONTENT_TYPES, validate_upload
from facepipe.services.face_state import states_into

logger = logging.getLogger(__name__)

# Rejection reasons written to the upload log
DOWNLOAD_FAILED = "download failed"
PROCESSED_WRITE_FAILED = "processed upload failed"
PROFILE_UPDATE_FAILED = "profile update failed"
VERSION_CONFLICT = "version conflict"
NOT_AWAITING_UPLOAD = "profile is not awaiting an upload"


def normalize_face_meta(face_meta: FaceMetaInput | None) -> dict[str, Any]:
    """
    Fill missing transform fields with defaults and pin the output size.

    Defaults: scale=1.0, rotation=0, offsetX=0, offsetY=0; width and
    height are always 512. A zero or negative scale counts as missing.
    """
    face_meta = face_meta or FaceMetaInput()
    return {
        "width": FACE_OUTPUT_SIZE,
        "height": FACE_OUTPUT_SIZE,
        "scale": face_meta.scale if face_meta.scale and face_meta.scale > 0 else 1.0,
        "rotation": face_meta.rotation if face_meta.rotation is not None else 0,
        "offsetX": face_meta.offsetX if face_meta.offsetX is not None else 0,
        "offsetY": face_meta.offsetY if face_meta.offsetY is not None else 0,
    }


class FaceProcessingService:
    """
    Server-side half of the upload protocol (the process-face function).

    Steps:
      1. Download the raw blob.
      2. Re-validate size + MIME type.
      3. Read face_version, derive new_version and the versioned path.
      4. Normalize face_meta.
      5. Write the processed face (overwrite allowed, the path is versioned).
      6. Resolve its public URL.
      7. Compare-and-set the profile to the new version, state "approved".
      8. Mark the upload log "accepted".

    Every failure after the log lookup is written to the log with a
    reason before it is raised. upload_id is the idempotency key: a log
    that is already final is replayed, never processed again.
    """

    def __init__(
        self,
        profile_repo: ProfileRepository,
        log_repo: UploadLogRepository,
        store: SupabaseAssetStore,
    ):
        self.profile_repo = profile_repo
        self.log_repo = log_repo
        self.store = store

    def process(self, session: Session, request: ProcessFaceRequest) -> ProcessFaceResponse:
        log = self._get_matching_log(session, request)
        if log.outcome != "pending":
            return self._replay(session, log, request)

        upload_id = request.upload_id

        # 1) Fetch raw blob
        try:
            blob = self.store.get(request.raw_path)
        except AssetStoreError as exc:
            logger.warning(f"Upload {upload_id}: raw download failed: {exc}")
            self._reject(session, upload_id, DOWNLOAD_FAILED)
            raise ProcessingRejection(
                DOWNLOAD_FAILED,
                status_code=status.HTTP_502_BAD_GATEWAY,
            ) from exc

        # 2) Re-validate; the orchestrator's check is not trusted
        try:
            ext = validate_upload(blob.size, blob.content_type)
        except AdmissionError as exc:
            logger.info(f"Upload {upload_id}: rejected on re-validation: {exc.message}")
            self._reject(session, upload_id, exc.message)
            raise ProcessingRejection(exc.message, status_code=exc.status_code) from exc

        # 3) Version + canonical path
        profile = self.profile_repo.get_or_create(session, request.user_id)
        current_version = profile.face_version
        new_version = current_version + 1
        processed_path = processed_face_path(request.user_id, new_version, ext)

        # 4) Normalize meta
        meta = normalize_face_meta(request.face_meta)

        # 5) Write processed face
        try:
            self.store.put(
                processed_path,
                blob.data,
                CANONICAL_CONTENT_TYPES[ext],
                upsert=True,
            )
        except AssetStoreError as exc:
            logger.error(f"Upload {upload_id}: processed write failed: {exc}")
            self._reject(session, upload_id, PROCESSED_WRITE_FAILED)
            raise ProcessingRejection(
                PROCESSED_WRITE_FAILED,
                status_code=status.HTTP_502_BAD_GATEWAY,
            ) from exc

        # 6) Public URL
        face_url = self.store.public_url(processed_path)

        # 7) Commit profile (compare-and-set on the version read in step 3)
        try:
            committed = self.profile_repo.commit_face_version(
                session,
                user_id=request.user_id,
                expected_version=current_version,
                new_version=new_version,
                face_path=processed_path,
                face_url=face_url,
                face_meta=meta,
                allowed_states=states_into("approved"),
            )
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Upload {upload_id}: profile update failed: {exc}")
            self._reject(session, upload_id, PROFILE_UPDATE_FAILED)
            raise ProcessingRejection(
                PROFILE_UPDATE_FAILED,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            ) from exc

        if not committed:
            reason = self._commit_failure_reason(session, request)
            logger.warning(f"Upload {upload_id}: not committed: {reason}")
            self._reject(session, upload_id, reason)
            raise ProcessingRejection(reason, status_code=status.HTTP_409_CONFLICT)

        # 8) Finalize log
        finalized = self.log_repo.finalize(
            session,
            upload_id,
            "accepted",
            processed_path=processed_path,
            face_version=new_version,
            file_size=blob.size,
            mime_type=blob.content_type,
        )
        if not finalized:
            # Reconcile closed the log while we were processing; the face is live.
            logger.warning(f"Upload {upload_id}: log was already final, left untouched")

        logger.info(f"Upload {upload_id}: approved as version {new_version}")

        # 9) Result
        return ProcessFaceResponse(
            face_url=face_url,
            face_version=new_version,
            meta=FaceMeta(**meta),
        )

    # ----- Helpers -----

    def _get_matching_log(self, session: Session, request: ProcessFaceRequest) -> FaceUploadLog:
        """
        Load the log created by the orchestrator for this attempt.

        Nothing is written for unknown or mismatched uploads.
        """
        log = self.log_repo.get_by_upload_id(session, request.upload_id)
        if log is None:
            raise ProcessingRejection(
                "Unknown upload",
                status_code=status.HTTP_404_NOT_FOUND,
            )
        if log.user_id != request.user_id or log.raw_path != request.raw_path:
            raise ProcessingRejection(
                "Upload does not match request",
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        return log

    def _replay(
        self,
        session: Session,
        log: FaceUploadLog,
        request: ProcessFaceRequest,
    ) -> ProcessFaceResponse:
        """
        Answer a repeated call for an attempt that is already final.

        Accepted attempts return their recorded version and URL; anything
        else returns its recorded reason. Nothing is written, so the
        profile's face_version is left alone.
        """
        if log.outcome == "accepted" and log.processed_path and log.face_version is not None:
            logger.info(f"Upload {log.upload_id}: replaying accepted result")
            profile = self.profile_repo.get_by_user_id(session, request.user_id)
            if profile is not None and profile.face_path == log.processed_path:
                meta = profile.face_meta
            else:
                meta = normalize_face_meta(request.face_meta)
            return ProcessFaceResponse(
                face_url=self.store.public_url(log.processed_path),
                face_version=log.face_version,
                meta=FaceMeta(**meta),
            )

        raise ProcessingRejection(
            log.reason or f"Upload already {log.outcome}",
            status_code=status.HTTP_409_CONFLICT,
        )

    def _reject(self, session: Session, upload_id: str, reason: str) -> None:
        self.log_repo.finalize(session, upload_id, "rejected", reason=reason)

    def _commit_failure_reason(
        self,
        session: Session,
        request: ProcessFaceRequest,
    ) -> str:
        profile = self.profile_repo.get_by_user_id(session, request.user_id)
        if profile is not None and profile.face_state not in states_into("approved"):
            return NOT_AWAITING_UPLOAD
        return VERSION_CONFLICT

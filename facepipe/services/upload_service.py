# facepipe/services/upload_service.py
import logging
import uuid

from sqlmodel import Session

from facepipe.core.errors import QuotaError
from facepipe.core.processing_client import SupabaseProcessingClient
from facepipe.core.storage_utils import (
    SupabaseAssetStore,
    extension_from_filename,
    raw_upload_path,
)
from facepipe.models.upload_log import FaceUploadLog
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.face import FaceMetaInput, FaceUploadResult, ProcessFaceRequest
from facepipe.services.admission import validate_upload
from facepipe.services.profile_service import ProfileService
from facepipe.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class FaceUploadService:
    """
    Client-facing half of the upload protocol.

    Steps (each one commits on its own; later failures do not undo
    earlier ones):
      1. Rate limit check                     -> QuotaError
      2. Local admission (size, MIME)         -> AdmissionError
      3. upload_id + raw_path
      4. Store raw bytes (never overwrite)    -> TransportError
      5. Create the "pending" upload log
      6. Count the upload, profile -> "pending"
      7. Call the processing function         -> TransportError / ProcessingRejection
      8. Return the processing result

    A crash between steps leaves a pending log / pending profile behind;
    the reconciliation pass resolves those.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        profile_service: ProfileService,
        log_repo: UploadLogRepository,
        store: SupabaseAssetStore,
        processing_client: SupabaseProcessingClient,
    ):
        self.rate_limiter = rate_limiter
        self.profile_service = profile_service
        self.log_repo = log_repo
        self.store = store
        self.processing_client = processing_client

    def submit(
        self,
        session: Session,
        user_id: uuid.UUID,
        filename: str | None,
        content_type: str | None,
        file_bytes: bytes,
        face_meta: FaceMetaInput | None = None,
        ip_address: str | None = None,
    ) -> FaceUploadResult:
        # 1) Quota
        limit = self.rate_limiter.check_and_maybe_reset(session, user_id)
        if not limit.allowed:
            logger.info(f"Upload refused for user {user_id}: quota exhausted")
            raise QuotaError(
                f"Upload limit reached. {limit.remaining} uploads remaining. "
                "Try again in 24 hours."
            )

        # 2) Local admission
        canonical_ext = validate_upload(len(file_bytes), content_type)

        # 3) Attempt identity
        upload_id = str(uuid.uuid4())
        ext = extension_from_filename(filename) or canonical_ext
        raw_path = raw_upload_path(user_id, upload_id, ext)

        # 4) Raw bytes, unique path per attempt
        self.store.put(raw_path, file_bytes, content_type, upsert=False)
        logger.info(f"Upload {upload_id}: raw stored at {raw_path} ({len(file_bytes)} bytes)")

        # 5) Audit row
        self.log_repo.create(
            session,
            FaceUploadLog(
                upload_id=upload_id,
                user_id=user_id,
                raw_path=raw_path,
                outcome="pending",
                file_size=len(file_bytes),
                mime_type=content_type,
                ip_address=ip_address,
            ),
        )

        # 6) Count it and wait for processing
        self.profile_service.get_or_create(session, user_id)
        self.rate_limiter.record_upload(session, user_id)
        self.profile_service.mark_pending(session, user_id)

        # 7) Server-side processing
        result = self.processing_client.process_face(
            ProcessFaceRequest(
                user_id=user_id,
                raw_path=raw_path,
                upload_id=upload_id,
                face_meta=face_meta,
            )
        )

        # 8) Propagate
        return FaceUploadResult(
            face_url=result.face_url,
            face_version=result.face_version,
            state=result.state,
            meta=result.meta,
            upload_id=upload_id,
        )

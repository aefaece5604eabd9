from datetime import datetime, timedelta, timezone

import pytest
from conftest import MB, add_profile

from facepipe.core.errors import (
    AdmissionError,
    AssetStoreError,
    ProcessingRejection,
    QuotaError,
    TransportError,
)
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.face import FaceMeta, FaceMetaInput, ProcessFaceResponse
from facepipe.services.profile_service import ProfileService
from facepipe.services.rate_limiter import RateLimiter
from facepipe.services.upload_service import FaceUploadService

profile_repo = ProfileRepository()
log_repo = UploadLogRepository()

JPEG = b"\xff\xd8\xff" + b"0" * 2048


class RecordingProcessingClient:
    def __init__(self, error=None):
        self.requests = []
        self.error = error

    def process_face(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return ProcessFaceResponse(
            face_url=f"https://cdn.example/faces/{request.user_id}/1.jpg",
            face_version=1,
            meta=FaceMeta(width=512, height=512, scale=1.0, rotation=0, offsetX=0, offsetY=0),
        )


def make_service(store, processing_client):
    return FaceUploadService(
        RateLimiter(profile_repo),
        ProfileService(profile_repo),
        log_repo,
        store,
        processing_client,
    )


def test_submit_runs_the_whole_sequence(session, store, player):
    processing = RecordingProcessingClient()
    service = make_service(store, processing)

    result = service.submit(
        session,
        player.id,
        filename="Selfie.JPG",
        content_type="image/jpeg",
        file_bytes=JPEG,
        face_meta=FaceMetaInput(scale=1.5),
        ip_address="203.0.113.7",
    )

    assert result.face_version == 1
    raw_path = f"user-uploads/raw/{player.id}/{result.upload_id}.jpg"
    assert store.paths() == [raw_path]

    sent = processing.requests[0]
    assert sent.user_id == player.id
    assert sent.raw_path == raw_path
    assert sent.upload_id == result.upload_id
    assert sent.face_meta.scale == 1.5

    log = log_repo.get_by_upload_id(session, result.upload_id)
    assert log.outcome == "pending"
    assert log.file_size == len(JPEG)
    assert log.mime_type == "image/jpeg"
    assert log.ip_address == "203.0.113.7"

    profile = profile_repo.get_by_user_id(session, player.id)
    assert profile.upload_count_today == 1
    assert profile.face_state == "pending"


def test_extension_falls_back_to_mime_type(session, store, player):
    service = make_service(store, RecordingProcessingClient())

    result = service.submit(session, player.id, "blob", "image/webp", b"RIFF0000WEBP")

    assert store.paths() == [f"user-uploads/raw/{player.id}/{result.upload_id}.webp"]


def test_quota_exhausted_stops_before_any_write(session, store, player):
    add_profile(
        session,
        player.id,
        upload_count_today=3,
        last_upload_reset=datetime.now(timezone.utc) - timedelta(hours=2),
    )
    processing = RecordingProcessingClient()

    with pytest.raises(QuotaError) as exc_info:
        make_service(store, processing).submit(
            session, player.id, "a.jpg", "image/jpeg", JPEG
        )

    assert exc_info.value.status_code == 429
    assert "0 uploads remaining" in exc_info.value.message
    assert store.paths() == []
    assert log_repo.list_logs(session, user_id=player.id) == []
    assert processing.requests == []


def test_oversized_file_is_rejected_locally(session, store, player):
    processing = RecordingProcessingClient()

    with pytest.raises(AdmissionError) as exc_info:
        make_service(store, processing).submit(
            session, player.id, "big.png", "image/png", b"0" * (6 * MB)
        )

    assert exc_info.value.message == "File size exceeds 5MB limit"
    assert store.paths() == []
    assert log_repo.list_logs(session, user_id=player.id) == []
    assert processing.requests == []


def test_raw_store_failure_creates_no_log(session, store, player):
    store.fail_writes = True

    with pytest.raises(AssetStoreError) as exc_info:
        make_service(store, RecordingProcessingClient()).submit(
            session, player.id, "a.jpg", "image/jpeg", JPEG
        )

    assert exc_info.value.code == "storage"
    assert log_repo.list_logs(session, user_id=player.id) == []
    assert profile_repo.get_by_user_id(session, player.id) is None


def test_transport_failure_leaves_pending_state_for_reconcile(session, store, player):
    processing = RecordingProcessingClient(error=TransportError("Processing service unreachable"))

    with pytest.raises(TransportError) as exc_info:
        make_service(store, processing).submit(
            session, player.id, "a.jpg", "image/jpeg", JPEG
        )

    assert exc_info.value.code == "transport"
    [log] = log_repo.list_logs(session, user_id=player.id)
    assert log.outcome == "pending"
    profile = profile_repo.get_by_user_id(session, player.id)
    assert profile.face_state == "pending"
    assert profile.upload_count_today == 1


def test_processing_rejection_is_propagated(session, store, player):
    processing = RecordingProcessingClient(error=ProcessingRejection("download failed", 502))

    with pytest.raises(ProcessingRejection) as exc_info:
        make_service(store, processing).submit(
            session, player.id, "a.jpg", "image/jpeg", JPEG
        )

    assert exc_info.value.message == "download failed"
    assert exc_info.value.code == "processing_rejected"


def test_new_upload_stops_serving_the_previous_face(session, store, player):
    add_profile(
        session,
        player.id,
        face_state="approved",
        face_version=2,
        face_path=f"faces/{player.id}/2.png",
        face_url="https://cdn.example/2.png",
    )
    processing = RecordingProcessingClient(error=TransportError("down"))

    with pytest.raises(TransportError):
        make_service(store, processing).submit(
            session, player.id, "a.jpg", "image/jpeg", JPEG
        )

    session.expire_all()
    profile = profile_repo.get_by_user_id(session, player.id)
    assert profile.face_state == "pending"
    assert profile.face_path is None
    assert profile.face_url is None
    assert profile.face_version == 2

# facepipe/routers/profiles.py
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlmodel import Session

from facepipe.core.auth import require_auth
from facepipe.core.processing_client import SupabaseProcessingClient, get_processing_client
from facepipe.core.storage_utils import SupabaseAssetStore, get_asset_store
from facepipe.database import get_session
from facepipe.models.player import Player
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.face import ErrorResponse, FaceMetaInput, FaceUploadResult
from facepipe.schemas.profile import ProfileRead, UploadLimitRead
from facepipe.schemas.upload_log import UploadLogRead
from facepipe.services.profile_service import ProfileService
from facepipe.services.rate_limiter import RateLimiter
from facepipe.services.upload_log_service import UploadLogService
from facepipe.services.upload_service import FaceUploadService

router = APIRouter(prefix="/profiles", tags=["Profiles"])

profile_repo = ProfileRepository()
log_repo = UploadLogRepository()
rate_limiter = RateLimiter(profile_repo)
profile_service = ProfileService(profile_repo)
log_service = UploadLogService(log_repo, profile_repo)


def get_upload_service(
    store: SupabaseAssetStore = Depends(get_asset_store),
    processing_client: SupabaseProcessingClient = Depends(get_processing_client),
) -> FaceUploadService:
    return FaceUploadService(
        rate_limiter,
        profile_service,
        log_repo,
        store,
        processing_client,
    )


def client_ip(request: Request) -> str | None:
    """Caller IP, honoring the first X-Forwarded-For hop behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("/me", response_model=ProfileRead)
def read_my_profile(
    session: Session = Depends(get_session),
    current_player: Player = Depends(require_auth),
):
    """
    Return the player's profile, creating the default one if missing.

    Auth:
      - Requires valid Supabase JWT.
    """
    return profile_service.get_or_create(session, current_player.id)


@router.get("/me/upload-limit", response_model=UploadLimitRead)
def read_upload_limit(
    session: Session = Depends(get_session),
    current_player: Player = Depends(require_auth),
):
    """
    Whether the player may upload now, and how many uploads are left
    in the current 24h window.

    Note: an expired window is reset by this call.
    """
    return rate_limiter.check_and_maybe_reset(session, current_player.id)


@router.post(
    "/me/face",
    response_model=FaceUploadResult,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Upload a new face image",
)
def upload_face(
    request: Request,
    file: UploadFile = File(...),
    scale: float | None = Form(default=None),
    rotation: float | None = Form(default=None),
    offset_x: float | None = Form(default=None),
    offset_y: float | None = Form(default=None),
    session: Session = Depends(get_session),
    current_player: Player = Depends(require_auth),
    service: FaceUploadService = Depends(get_upload_service),
):
    """
    Upload the composited face image produced by the editor.

    - Accepts JPEG, PNG, WEBP up to 5MB.
    - At most 3 uploads per rolling 24h window.
    - Transform parameters are optional; missing ones get defaults.

    Errors come back as `{ok: false, error, code}`.
    """
    file_bytes = file.file.read()
    face_meta = FaceMetaInput(
        scale=scale,
        rotation=rotation,
        offsetX=offset_x,
        offsetY=offset_y,
    )
    return service.submit(
        session=session,
        user_id=current_player.id,
        filename=file.filename,
        content_type=file.content_type,
        file_bytes=file_bytes,
        face_meta=face_meta,
        ip_address=client_ip(request),
    )


@router.delete("/me/face", response_model=ProfileRead, status_code=status.HTTP_200_OK)
def remove_face(
    session: Session = Depends(get_session),
    current_player: Player = Depends(require_auth),
):
    """
    Remove the player's face; the avatar falls back to the default head.
    """
    return profile_service.remove_face(session, current_player.id)


@router.get("/me/uploads", response_model=list[UploadLogRead])
def list_my_uploads(
    session: Session = Depends(get_session),
    current_player: Player = Depends(require_auth),
    skip: int = 0,
    limit: int = 50,
):
    """
    The player's upload history, newest first.
    """
    return log_service.list_for_user(session, current_player.id, skip, limit)

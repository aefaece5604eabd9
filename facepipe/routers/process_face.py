# facepipe/routers/process_face.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from facepipe.core.auth import require_service_role
from facepipe.core.errors import FUNCTIONS_PREFIX
from facepipe.core.storage_utils import SupabaseAssetStore, get_asset_store
from facepipe.database import get_session
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.repositories.upload_log_repo import UploadLogRepository
from facepipe.schemas.face import ErrorResponse, ProcessFaceRequest, ProcessFaceResponse
from facepipe.services.processing_service import FaceProcessingService

# Mounted without the API prefix so the path matches the Supabase
# Functions layout: {SUPABASE_URL}/functions/v1/process-face
router = APIRouter(prefix=FUNCTIONS_PREFIX, tags=["Functions"])

profile_repo = ProfileRepository()
log_repo = UploadLogRepository()


def get_processing_service(
    store: SupabaseAssetStore = Depends(get_asset_store),
) -> FaceProcessingService:
    return FaceProcessingService(profile_repo, log_repo, store)


@router.post(
    "/process-face",
    response_model=ProcessFaceResponse,
    dependencies=[Depends(require_service_role)],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
def process_face(
    payload: ProcessFaceRequest,
    session: Session = Depends(get_session),
    service: FaceProcessingService = Depends(get_processing_service),
):
    """
    Server-side processing of a raw upload.

    Called by the upload endpoint with the service role key only.
    """
    return service.process(session, payload)

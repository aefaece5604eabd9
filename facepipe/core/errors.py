# facepipe/core/errors.py
from fastapi import Request, status
from fastapi.exception_handlers import (
    http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Routes that speak the processing-function wire format
FUNCTIONS_PREFIX = "/functions/v1"


class FaceUploadError(Exception):
    """
    Base class for every failure of the face upload pipeline.

    Each subclass maps to one case of the error taxonomy so callers
    can tell them apart without parsing messages:

      - AdmissionError      -> "admission"
      - QuotaError          -> "quota"
      - TransportError      -> "transport" ("storage" for blob I/O)
      - ProcessingRejection -> "processing_rejected"
      - FaceStateError      -> "invalid_state"

    All of them are scoped to a single upload attempt.
    """

    code: str = "face_upload_error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, object]:
        return {"ok": False, "error": self.message, "code": self.code}


class AdmissionError(FaceUploadError):
    """File size or MIME type violation. The user can pick another file."""

    code = "admission"
    status_code = status.HTTP_400_BAD_REQUEST


class QuotaError(FaceUploadError):
    """Upload quota exhausted for the current 24h window."""

    code = "quota"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class TransportError(FaceUploadError):
    """Store or remote-call failure. Safe to retry, never retried automatically."""

    code = "transport"
    status_code = status.HTTP_502_BAD_GATEWAY


class AssetStoreError(TransportError):
    """Blob read/write failure in the asset store."""

    code = "storage"


class ProcessingRejection(FaceUploadError):
    """Server-side processing declined the upload (terminal for that attempt)."""

    code = "processing_rejected"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class FaceStateError(FaceUploadError):
    """Illegal face_state transition."""

    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


async def face_upload_error_handler(request: Request, exc: FaceUploadError) -> JSONResponse:
    """Render pipeline errors as structured `{ok: false, error, code}` bodies."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _is_function_call(request: Request) -> bool:
    return request.url.path.startswith(FUNCTIONS_PREFIX)


async def boundary_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Auth and routing failures on the processing function keep the
    `{ok: false, error, code}` body; every other route keeps FastAPI's
    default `{"detail": ...}`.
    """
    if not _is_function_call(request):
        return await http_exception_handler(request, exc)
    code = (
        "unauthorized"
        if exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)
        else ProcessingRejection.code
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc.detail), "code": code},
        headers=getattr(exc, "headers", None),
    )


async def boundary_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed process-face bodies: one readable line per field error."""
    if not _is_function_call(request):
        return await request_validation_exception_handler(request, exc)
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content={
            "ok": False,
            "error": f"Invalid request: {problems}",
            "code": "invalid_request",
        },
    )

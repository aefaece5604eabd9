# facepipe/services/admission.py
from fastapi import status

from facepipe.core.errors import AdmissionError

# --- Face upload config ---

MAX_FACE_BYTES = 5 * 1024 * 1024  # 5MB per upload

# Accepted MIME type -> canonical file extension
ALLOWED_FACE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

# Canonical extension -> content type written to storage
CANONICAL_CONTENT_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

FILE_TOO_LARGE = "File size exceeds 5MB limit"
INVALID_FILE_TYPE = "Invalid file type. Only JPG, PNG, and WebP allowed."


def validate_upload(file_size: int, mime_type: str | None) -> str:
    """
    Admission check for a candidate face image.

    Rules, first failure wins:
      1. file_size <= 5MB
      2. mime_type is JPEG, PNG or WebP

    Runs once before anything is stored and again inside the processing
    function, since the first pass happens on behalf of the client.

    Returns:
        Canonical extension for the MIME type ("jpg", "png", "webp").

    Raises:
        AdmissionError(413): file too large.
        AdmissionError(400): unsupported type.
    """
    if file_size > MAX_FACE_BYTES:
        raise AdmissionError(
            FILE_TOO_LARGE,
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
        )

    normalized = (mime_type or "").strip().lower()
    if normalized not in ALLOWED_FACE_CONTENT_TYPES:
        raise AdmissionError(INVALID_FILE_TYPE)

    return ALLOWED_FACE_CONTENT_TYPES[normalized]

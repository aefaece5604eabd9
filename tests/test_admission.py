import pytest

from facepipe.core.errors import AdmissionError
from facepipe.services.admission import (
    FILE_TOO_LARGE,
    INVALID_FILE_TYPE,
    MAX_FACE_BYTES,
    validate_upload,
)


@pytest.mark.parametrize(
    "mime_type, ext",
    [
        ("image/jpeg", "jpg"),
        ("image/jpg", "jpg"),
        ("image/png", "png"),
        ("image/webp", "webp"),
        ("IMAGE/PNG", "png"),
    ],
)
def test_accepts_allowed_types(mime_type, ext):
    assert validate_upload(1024, mime_type) == ext


def test_accepts_exactly_five_megabytes():
    assert validate_upload(MAX_FACE_BYTES, "image/png") == "png"


def test_rejects_one_byte_over_the_limit():
    with pytest.raises(AdmissionError) as exc_info:
        validate_upload(MAX_FACE_BYTES + 1, "image/png")

    assert exc_info.value.message == FILE_TOO_LARGE
    assert exc_info.value.status_code == 413
    assert exc_info.value.code == "admission"


@pytest.mark.parametrize("mime_type", ["image/gif", "application/pdf", "", None])
def test_rejects_other_types(mime_type):
    with pytest.raises(AdmissionError) as exc_info:
        validate_upload(1024, mime_type)

    assert exc_info.value.message == INVALID_FILE_TYPE
    assert exc_info.value.status_code == 400


def test_size_is_checked_before_type():
    with pytest.raises(AdmissionError) as exc_info:
        validate_upload(MAX_FACE_BYTES + 1, "image/gif")

    assert exc_info.value.message == FILE_TOO_LARGE

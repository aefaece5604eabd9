import uuid
from types import SimpleNamespace

import pytest

from facepipe.core import storage_utils
from facepipe.core.errors import AssetStoreError, TransportError
from facepipe.core.storage_utils import (
    SupabaseAssetStore,
    extension_from_filename,
    processed_face_path,
    raw_upload_path,
)


class FakeBucket:
    def __init__(self, listing=None, fail=False):
        self.uploads = []
        self.listing = listing or []
        self.fail = fail

    def upload(self, path, data, options):
        if self.fail:
            raise RuntimeError("The resource already exists")
        self.uploads.append((path, data, options))

    def download(self, path):
        if self.fail:
            raise RuntimeError("Object not found")
        return b"raw-bytes"

    def list(self, folder, options):
        return self.listing


def patch_admin(monkeypatch, bucket):
    fake_client = SimpleNamespace(storage=SimpleNamespace(from_=lambda name: bucket))
    monkeypatch.setattr(storage_utils, "supabase_admin", lambda: fake_client)


def test_paths_follow_bucket_layout():
    user_id = uuid.UUID("00000000-0000-0000-0000-000000000001")

    assert (
        raw_upload_path(user_id, "abc", "png")
        == "user-uploads/raw/00000000-0000-0000-0000-000000000001/abc.png"
    )
    assert (
        processed_face_path(user_id, 3, "webp")
        == "faces/00000000-0000-0000-0000-000000000001/3.webp"
    )


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("selfie.JPG", "jpg"),
        ("my.face.webp", "webp"),
        ("noext", None),
        (None, None),
        ("weird.png/../x", None),
        ("trailing.", None),
    ],
)
def test_extension_from_filename(filename, expected):
    assert extension_from_filename(filename) == expected


def test_put_never_overwrites_unless_asked(monkeypatch):
    bucket = FakeBucket()
    patch_admin(monkeypatch, bucket)
    store = SupabaseAssetStore("user-faces")

    store.put("a/b.png", b"x", "image/png")
    store.put("faces/u/1.png", b"y", "image/png", upsert=True)

    assert bucket.uploads[0][2] == {"content-type": "image/png", "upsert": "false"}
    assert bucket.uploads[1][2] == {"content-type": "image/png", "upsert": "true"}


def test_client_failures_become_asset_store_errors(monkeypatch):
    patch_admin(monkeypatch, FakeBucket(fail=True))
    store = SupabaseAssetStore("user-faces")

    with pytest.raises(AssetStoreError) as exc_info:
        store.put("a/b.png", b"x", "image/png")
    assert isinstance(exc_info.value, TransportError)
    assert exc_info.value.code == "storage"

    with pytest.raises(AssetStoreError):
        store.get("a/b.png")


def test_get_reads_stored_mimetype(monkeypatch):
    listing = [
        {"name": "other.png", "metadata": {"mimetype": "image/png"}},
        {"name": "b.jpeg", "metadata": {"mimetype": "image/webp"}},
    ]
    patch_admin(monkeypatch, FakeBucket(listing=listing))

    blob = SupabaseAssetStore("user-faces").get("a/b.jpeg")

    assert blob.data == b"raw-bytes"
    assert blob.content_type == "image/webp"
    assert blob.size == len(b"raw-bytes")


def test_get_falls_back_to_extension(monkeypatch):
    patch_admin(monkeypatch, FakeBucket(listing=[]))

    blob = SupabaseAssetStore("user-faces").get("a/b.png")

    assert blob.content_type == "image/png"

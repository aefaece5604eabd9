# facepipe/core/storage_utils.py
import mimetypes
from dataclasses import dataclass
from functools import lru_cache

from facepipe.core.config import get_settings
from facepipe.core.errors import AssetStoreError
from facepipe.core.supabase_client import supabase_admin, supabase_public

RAW_UPLOAD_PREFIX = "user-uploads/raw"
PROCESSED_FACE_PREFIX = "faces"


@dataclass(frozen=True)
class StoredBlob:
    """Bytes fetched from the asset store plus the metadata we re-validate."""

    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def raw_upload_path(user_id: object, upload_id: str, ext: str) -> str:
    """
    Object path of a raw upload. Unique per upload attempt.

    Example:
        user-uploads/raw/<user_id>/<upload_id>.png
    """
    return f"{RAW_UPLOAD_PREFIX}/{user_id}/{upload_id}.{ext}"


def processed_face_path(user_id: object, version: int, ext: str) -> str:
    """
    Object path of a processed face. Encodes the profile version, so every
    approved face keeps its own location.

    Example:
        faces/<user_id>/3.webp
    """
    return f"{PROCESSED_FACE_PREFIX}/{user_id}/{version}.{ext}"


def extension_from_filename(filename: str | None) -> str | None:
    """
    Lowercased extension of `filename` without the dot.

    Returns None when there is no usable extension (anything that is not
    a short alphanumeric suffix), so it cannot inject path segments.
    """
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[-1].strip().lower()
    if not ext.isalnum() or len(ext) > 5:
        return None
    return ext


class SupabaseAssetStore:
    """
    Asset store backed by a Supabase Storage bucket.

    Contract:
      - put(path, data, content_type, upsert): write bytes; with upsert=False
        an existing object is an error, never overwritten.
      - get(path): download bytes and the stored content type.
      - public_url(path): publicly resolvable URL for the object.

    Any client-side failure is re-raised as AssetStoreError so the
    pipeline can classify it as a transport failure.
    """

    def __init__(self, bucket: str):
        self.bucket = bucket

    def _admin_bucket(self):
        return supabase_admin().storage.from_(self.bucket)

    def put(
        self,
        path: str,
        data: bytes,
        content_type: str,
        upsert: bool = False,
    ) -> None:
        try:
            self._admin_bucket().upload(
                path,
                data,
                {"content-type": content_type, "upsert": "true" if upsert else "false"},
            )
        except Exception as exc:
            raise AssetStoreError(f"Storage write failed for {path}: {exc}") from exc

    def get(self, path: str) -> StoredBlob:
        bucket = self._admin_bucket()
        try:
            data = bucket.download(path)
            content_type = self._stored_content_type(bucket, path)
        except Exception as exc:
            raise AssetStoreError(f"Storage read failed for {path}: {exc}") from exc
        return StoredBlob(data=data, content_type=content_type)

    def public_url(self, path: str) -> str:
        return supabase_public().storage.from_(self.bucket).get_public_url(path)

    @staticmethod
    def _stored_content_type(bucket, path: str) -> str:
        """
        Look up the mimetype Storage recorded for the object.

        Falls back to guessing from the extension when the listing carries
        no metadata (e.g. older Storage versions).
        """
        folder, _, name = path.rpartition("/")
        for entry in bucket.list(folder, {"search": name}):
            if entry.get("name") == name:
                metadata = entry.get("metadata") or {}
                if metadata.get("mimetype"):
                    return metadata["mimetype"]
        guessed, _ = mimetypes.guess_type(path)
        return guessed or "application/octet-stream"


@lru_cache
def get_asset_store() -> SupabaseAssetStore:
    """FastAPI dependency returning the process-wide asset store."""
    return SupabaseAssetStore(get_settings().FACE_BUCKET)

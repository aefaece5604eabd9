import os
import uuid
from datetime import datetime, timedelta, timezone

# Settings are read at import time; point everything at local test values.
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["SUPABASE_KEY"] = "anon-test-key"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-role-test-key"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel, create_engine
from supabase import FunctionsHttpError

from facepipe.core.errors import AssetStoreError
from facepipe.core.processing_client import SupabaseProcessingClient, get_processing_client
from facepipe.core.storage_utils import StoredBlob, get_asset_store
from facepipe.database import get_session
from facepipe.main import app
from facepipe.models.player import Player
from facepipe.models.profile import Profile
from facepipe.models.upload_log import FaceUploadLog

SERVICE_ROLE_KEY = "service-role-test-key"
JWT_SECRET = "test-jwt-secret"
PUBLIC_BASE = "https://example.supabase.co/storage/v1/object/public/user-faces"

MB = 1024 * 1024


class InMemoryAssetStore:
    """Asset store double with switchable outages."""

    def __init__(self):
        self.objects: dict[str, StoredBlob] = {}
        self.fail_reads = False
        self.fail_writes = False

    def put(self, path, data, content_type, upsert=False):
        if self.fail_writes:
            raise AssetStoreError(f"Storage write failed for {path}: outage")
        if path in self.objects and not upsert:
            raise AssetStoreError(f"Storage write failed for {path}: Duplicate")
        self.objects[path] = StoredBlob(data=data, content_type=content_type)

    def get(self, path):
        if self.fail_reads or path not in self.objects:
            raise AssetStoreError(f"Storage read failed for {path}: outage")
        return self.objects[path]

    def public_url(self, path):
        return f"{PUBLIC_BASE}/{path}"

    def paths(self, prefix=""):
        return sorted(p for p in self.objects if p.startswith(prefix))


class TestClientFunctions:
    """
    Stands in for `supabase.functions`: forwards invoke() to the app's own
    process-face route and raises like the Supabase client on non-2xx.
    """

    __test__ = False

    def __init__(self, client: TestClient):
        self.client = client

    def invoke(self, function_name, invoke_options=None):
        body = (invoke_options or {}).get("body")
        response = self.client.post(
            f"/functions/v1/{function_name}",
            json=body,
            headers={"Authorization": f"Bearer {SERVICE_ROLE_KEY}"},
        )
        if response.status_code >= 400:
            exc = FunctionsHttpError(response.json().get("error"))
            exc.status = response.status_code
            raise exc
        return response.json()


def make_token(user_id: uuid.UUID, email: str | None = None) -> str:
    claims = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        "aud": "authenticated",
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, 'player@example.com')}"}


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'facepipe.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store():
    return InMemoryAssetStore()


@pytest.fixture
def player(session):
    player = Player(id=uuid.uuid4(), username="snake")
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


@pytest.fixture
def client(engine, store):
    def override_session():
        with Session(engine) as session:
            yield session

    test_client = TestClient(app)
    processing_client = SupabaseProcessingClient(
        "process-face",
        functions=TestClientFunctions(test_client),
    )

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_asset_store] = lambda: store
    app.dependency_overrides[get_processing_client] = lambda: processing_client
    yield test_client
    app.dependency_overrides.clear()


def add_profile(session: Session, user_id: uuid.UUID, **fields) -> Profile:
    profile = Profile(user_id=user_id, **fields)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def seed_upload(
    session: Session,
    store: InMemoryAssetStore,
    user_id: uuid.UUID,
    data: bytes = b"\x89PNG" + b"0" * 1024,
    content_type: str = "image/png",
    ext: str = "png",
    created_at: datetime | None = None,
) -> FaceUploadLog:
    """Everything the orchestrator leaves behind before calling processing."""
    upload_id = str(uuid.uuid4())
    raw_path = f"user-uploads/raw/{user_id}/{upload_id}.{ext}"
    store.put(raw_path, data, content_type)
    log = FaceUploadLog(
        upload_id=upload_id,
        user_id=user_id,
        raw_path=raw_path,
        file_size=len(data),
        mime_type=content_type,
    )
    if created_at is not None:
        log.created_at = created_at
    session.add(log)
    session.commit()
    session.refresh(log)
    return log

# facepipe/core/auth.py
import secrets
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from facepipe.core.config import get_settings
from facepipe.database import get_session
from facepipe.models.player import Player
from facepipe.repositories.player_repo import PlayerRepository
from facepipe.repositories.profile_repo import ProfileRepository

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support "guest" mode (unauthenticated).
bearer_scheme = HTTPBearer(auto_error=False)

player_repo = PlayerRepository()
profile_repo = ProfileRepository()


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def _default_username(payload: dict[str, Any], sub: uuid.UUID) -> str:
    """
    Pick a display name for a freshly provisioned player:
    user_metadata.username, else the local part of the email,
    else "player-<first 8 chars of id>".
    """
    metadata = payload.get("user_metadata") or {}
    username = metadata.get("username")
    if username:
        return str(username)[:50]
    email = payload.get("email")
    if email and "@" in email:
        return email.split("@", 1)[0][:50]
    return f"player-{str(sub)[:8]}"


def get_current_player(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Player | None:
    """
    Resolve the current player from a Supabase JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'sub' (auth user id).
      3. Convert 'sub' to UUID to match Player.id type.
      4. Find the player row.
      5. If missing, auto-provision the player and its default profile.

    Raises:
        HTTPException(401): if token is malformed or missing 'sub'.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")

    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    # Supabase provides sub as a string; enforce UUID
    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    player = player_repo.get_by_id(session, sub_uuid)

    # Auto-provision on first request; every player gets a profile.
    if player is None:
        player = player_repo.create(
            session,
            Player(id=sub_uuid, username=_default_username(payload, sub_uuid)),
        )
        profile_repo.get_or_create(session, player.id)

    return player


def require_auth(player: Player | None = Depends(get_current_player)) -> Player:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if player is None.
    """
    if player is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return player


def require_admin(player: Player = Depends(require_auth)) -> Player:
    """
    Enforce admin role (moderation and audit endpoints).

    Raises:
        HTTPException(403): if role is not admin.
    """
    if player.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return player


def require_service_role(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """
    Guard for the process-face function: only callers holding the
    service role key (the backend itself) may invoke it.

    Raises:
        HTTPException(401): missing or wrong bearer.
    """
    expected = get_settings().SUPABASE_SERVICE_ROLE_KEY
    if (
        credentials is None
        or not expected
        or not secrets.compare_digest(credentials.credentials, expected)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Service role required",
        )

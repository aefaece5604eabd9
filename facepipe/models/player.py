# facepipe/models/player.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Player(SQLModel, table=True):
    """
    Game player identity.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "player" | "admin"
      - guests are represented by the absence of a token.

    Passwords live in Supabase Auth; this table only mirrors identity,
    display name and application role.
    """

    __tablename__ = "players"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    username: str = Field(
        max_length=50,
        description="Display name shown in game; derived from the token by default",
    )

    role: str = Field(
        default="player",
        index=True,
        description="Application role: player | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

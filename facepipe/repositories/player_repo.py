# facepipe/repositories/player_repo.py
import uuid

from sqlmodel import Session

from facepipe.models.player import Player


class PlayerRepository:
    """
    Data access layer for Player.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, player_id: uuid.UUID) -> Player | None:
        """Return a Player by primary key, or None if not found."""
        return session.get(Player, player_id)

    def create(self, session: Session, player: Player) -> Player:
        """Insert a new Player and return the persisted row."""
        session.add(player)
        session.commit()
        session.refresh(player)
        return player

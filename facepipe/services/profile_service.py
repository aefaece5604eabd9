# facepipe/services/profile_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from facepipe.models.profile import Profile
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.schemas.profile import FaceStateUpdate
from facepipe.services.face_state import apply_state

logger = logging.getLogger(__name__)


class ProfileService:
    """
    Business logic for Profile state outside of processing.

    Responsibilities:
      - lazy profile creation
      - moving a profile to "pending" when an upload starts
      - removing a face (player) and moderation (admin)
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    def get_or_create(self, session: Session, user_id: uuid.UUID) -> Profile:
        return self.repo.get_or_create(session, user_id)

    def get_profile(self, session: Session, user_id: uuid.UUID) -> Profile:
        """
        Get an existing profile (admin lookups).

        Raises:
            HTTPException(404): if the user has no profile.
        """
        profile = self.repo.get_by_user_id(session, user_id)
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profile not found",
            )
        return profile

    def mark_pending(self, session: Session, user_id: uuid.UUID) -> Profile:
        """Upload started: the profile waits for processing."""
        profile = self.repo.get_or_create(session, user_id)
        apply_state(profile, "pending")
        return self.repo.update(session, profile)

    def remove_face(self, session: Session, user_id: uuid.UUID) -> Profile:
        """
        Player removes their face and goes back to the default head.

        Idempotent: removing when there is no face is a no-op.
        """
        profile = self.repo.get_or_create(session, user_id)
        if profile.face_state == "none":
            return profile
        apply_state(profile, "none")
        logger.info(f"Face removed for user {user_id}")
        return self.repo.update(session, profile)

    def moderate(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: FaceStateUpdate,
    ) -> Profile:
        """
        Admin action: flag, reject or clear a player's face.

        Invalid transitions raise FaceStateError (409).
        """
        profile = self.get_profile(session, user_id)
        if profile.face_state == payload.state:
            return profile
        previous = profile.face_state
        apply_state(profile, payload.state)
        logger.info(
            f"Moderation moved user {user_id} from {previous} to {payload.state}"
            + (f" ({payload.reason})" if payload.reason else "")
        )
        return self.repo.update(session, profile)

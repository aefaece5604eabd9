# facepipe/repositories/profile_repo.py
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from facepipe.models.profile import Profile, utcnow


class ProfileRepository:
    """
    Data access layer for Profile.

    Every write is a single-row statement committed on its own; there is
    no transaction spanning several calls.
    """

    def get_by_user_id(self, session: Session, user_id: uuid.UUID) -> Profile | None:
        stmt = select(Profile).where(Profile.user_id == user_id)
        return session.exec(stmt).first()

    def get_or_create(self, session: Session, user_id: uuid.UUID) -> Profile:
        """
        Return the user's profile, inserting the default one if missing.

        A concurrent insert for the same user loses on the unique
        constraint; in that case the winner's row is returned.
        """
        profile = self.get_by_user_id(session, user_id)
        if profile is not None:
            return profile

        profile = Profile.default_for(user_id)
        session.add(profile)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = self.get_by_user_id(session, user_id)
            if existing is None:
                raise
            return existing
        session.refresh(profile)
        return profile

    def list_by_state(self, session: Session, face_state: str) -> list[Profile]:
        stmt = select(Profile).where(Profile.face_state == face_state)
        return session.exec(stmt).all()

    def update(self, session: Session, profile: Profile) -> Profile:
        """Persist changes to an existing Profile."""
        profile.updated_at = utcnow()
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    def reset_upload_window(
        self,
        session: Session,
        user_id: uuid.UUID,
        now: datetime,
    ) -> None:
        """Start a fresh quota window at `now` with a zero counter."""
        stmt = (
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(upload_count_today=0, last_upload_reset=now)
        )
        session.exec(stmt)
        session.commit()

    def increment_upload_count(
        self,
        session: Session,
        user_id: uuid.UUID,
        ceiling: int,
    ) -> bool:
        """
        Atomic increment-with-ceiling of upload_count_today.

        Runs as one conditional UPDATE, so the counter can never pass
        `ceiling` however many requests race on it.

        Returns:
            True if the counter was incremented, False if it was already
            at the ceiling (no-op).
        """
        stmt = (
            update(Profile)
            .where(Profile.user_id == user_id)
            .where(Profile.upload_count_today < ceiling)
            .values(upload_count_today=Profile.upload_count_today + 1)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount == 1

    def commit_face_version(
        self,
        session: Session,
        user_id: uuid.UUID,
        expected_version: int,
        new_version: int,
        face_path: str,
        face_url: str,
        face_meta: dict[str, Any],
        allowed_states: tuple[str, ...],
    ) -> bool:
        """
        Compare-and-set the approved face.

        The row is only written when face_version still equals
        `expected_version` and face_state is one of `allowed_states`.

        Returns:
            True if the row was updated, False if another writer got there
            first (or the profile left the allowed states).
        """
        stmt = (
            update(Profile)
            .where(Profile.user_id == user_id)
            .where(Profile.face_version == expected_version)
            .where(Profile.face_state.in_(allowed_states))
            .values(
                face_path=face_path,
                face_url=face_url,
                face_version=new_version,
                face_state="approved",
                face_meta=face_meta,
                updated_at=utcnow(),
            )
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount == 1

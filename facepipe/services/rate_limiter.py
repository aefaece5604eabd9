# facepipe/services/rate_limiter.py
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from facepipe.models.profile import Profile, utcnow
from facepipe.repositories.profile_repo import ProfileRepository
from facepipe.schemas.profile import UploadLimitRead

logger = logging.getLogger(__name__)

# Fixed policy: 3 uploads per rolling 24h window
UPLOAD_QUOTA = 3
QUOTA_WINDOW = timedelta(hours=24)


def _as_utc(value: datetime) -> datetime:
    # sqlite hands timestamps back without tzinfo; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RateLimiter:
    """
    Upload quota over a rolling 24h window stored on the Profile.

    The check is a plain read (plus the lazy reset). It is not locked:
    two uploads that both read a count of 2 will both be allowed. The
    counter itself is bumped with an atomic increment-with-ceiling, so
    it never goes past UPLOAD_QUOTA.
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    def check_and_maybe_reset(
        self,
        session: Session,
        user_id: uuid.UUID,
        now: datetime | None = None,
    ) -> UploadLimitRead:
        """
        Decide whether `user_id` may start a new upload.

        - Window expired (>= 24h since last reset): counter goes back to 0,
          the window restarts at `now`, and the reset is persisted right
          away (so this read can write).
        - Otherwise: allowed while the counter is below the quota.

        A user without a profile row behaves like the default profile and
        nothing is written.
        """
        now = now or utcnow()
        profile = self.repo.get_by_user_id(session, user_id)
        if profile is None:
            # Fresh window anchored at now, so no reset branch here
            return self._limit_for(Profile.default_for(user_id).upload_count_today)

        if now - _as_utc(profile.last_upload_reset) >= QUOTA_WINDOW:
            logger.info(f"Quota window rolled over for user {user_id}")
            self.repo.reset_upload_window(session, user_id, now)
            return UploadLimitRead(allowed=True, remaining=UPLOAD_QUOTA)

        return self._limit_for(profile.upload_count_today)

    def record_upload(self, session: Session, user_id: uuid.UUID) -> bool:
        """
        Count one started upload against the window.

        Returns False when the counter was already at the quota, which
        only happens when concurrent uploads passed the check together.
        """
        counted = self.repo.increment_upload_count(session, user_id, UPLOAD_QUOTA)
        if not counted:
            logger.warning(
                f"Upload counter for user {user_id} already at {UPLOAD_QUOTA}; "
                "concurrent upload admitted"
            )
        return counted

    @staticmethod
    def _limit_for(count: int) -> UploadLimitRead:
        return UploadLimitRead(
            allowed=count < UPLOAD_QUOTA,
            remaining=max(0, UPLOAD_QUOTA - count),
        )

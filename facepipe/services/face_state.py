# facepipe/services/face_state.py
from facepipe.core.errors import FaceStateError
from facepipe.models.profile import Profile

# Legal face_state transitions:
#
#   none     -> pending
#   pending  -> pending, approved, rejected, flagged, none
#   approved -> pending, approved, rejected, flagged, none
#   rejected -> pending, none
#   flagged  -> pending, none
#
# "pending -> pending" and "approved -> approved" cover concurrent
# uploads by the same player.
TRANSITIONS: dict[str, set[str]] = {
    "none": {"pending"},
    "pending": {"pending", "approved", "rejected", "flagged", "none"},
    "approved": {"pending", "approved", "rejected", "flagged", "none"},
    "rejected": {"pending", "none"},
    "flagged": {"pending", "none"},
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


def ensure_transition(current: str, new: str) -> None:
    """Raise FaceStateError(409) unless `current -> new` is legal."""
    if not can_transition(current, new):
        raise FaceStateError(f"Invalid face state transition: {current} -> {new}")


def states_into(target: str) -> tuple[str, ...]:
    """All states from which `target` can be entered."""
    return tuple(sorted(s for s, allowed in TRANSITIONS.items() if target in allowed))


def apply_state(profile: Profile, new_state: str) -> Profile:
    """
    Move `profile` to a non-approved state in memory.

    Only an approved profile serves a face, so every other state drops
    face_path / face_url. The processed blobs stay in storage.
    Approval goes through the processing function's versioned commit.
    """
    if new_state == "approved":
        raise FaceStateError("A face can only be approved by processing")

    ensure_transition(profile.face_state, new_state)
    profile.face_state = new_state
    profile.face_path = None
    profile.face_url = None
    return profile

import uuid

import pytest

from facepipe.core.errors import FaceStateError
from facepipe.models.profile import Profile
from facepipe.services.face_state import (
    apply_state,
    can_transition,
    ensure_transition,
    states_into,
)


def approved_profile() -> Profile:
    return Profile(
        user_id=uuid.uuid4(),
        face_state="approved",
        face_path="faces/u/1.png",
        face_url="https://cdn/faces/u/1.png",
        face_version=1,
    )


def test_upload_can_start_from_every_state():
    for state in ["none", "pending", "approved", "rejected", "flagged"]:
        assert can_transition(state, "pending")


def test_removal_is_allowed_from_pending_and_terminal_states():
    for state in ["pending", "approved", "rejected", "flagged"]:
        assert can_transition(state, "none")


def test_approval_only_from_pending_or_approved():
    assert states_into("approved") == ("approved", "pending")


@pytest.mark.parametrize(
    "current, new",
    [
        ("none", "approved"),
        ("none", "flagged"),
        ("rejected", "approved"),
        ("flagged", "approved"),
        ("flagged", "rejected"),
    ],
)
def test_illegal_transitions(current, new):
    assert not can_transition(current, new)
    with pytest.raises(FaceStateError):
        ensure_transition(current, new)


@pytest.mark.parametrize("new_state", ["pending", "flagged", "rejected", "none"])
def test_leaving_approved_clears_the_served_face(new_state):
    profile = apply_state(approved_profile(), new_state)

    assert profile.face_state == new_state
    assert profile.face_path is None
    assert profile.face_url is None
    assert profile.face_version == 1


def test_apply_state_refuses_manual_approval():
    profile = Profile(user_id=uuid.uuid4(), face_state="pending")

    with pytest.raises(FaceStateError):
        apply_state(profile, "approved")

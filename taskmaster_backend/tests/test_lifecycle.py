from datetime import datetime

import pytest

from taskmaster.errors import ValidationError
from taskmaster.lifecycle import is_completion_transition, resolve_completion
from taskmaster.models import Status

NOW = datetime(2024, 6, 15, 12, 0, 0)
EARLIER = datetime(2024, 6, 1, 8, 0, 0)


def stored(status=Status.PENDING, completed=False, completed_at=None):
    return {"status": status, "completed": completed, "completed_at": completed_at}


class TestCreate:
    def test_defaults_to_pending(self):
        assert resolve_completion(None, {}, NOW) == stored()

    def test_created_completed(self):
        assert resolve_completion(None, {"completed": True}, NOW) == stored(Status.COMPLETED, True, NOW)

    def test_created_with_status(self):
        result = resolve_completion(None, {"status": Status.IN_PROGRESS}, NOW)
        assert result == stored(Status.IN_PROGRESS)


class TestUpdate:
    def test_untouched_patch_returns_nothing(self):
        assert resolve_completion(stored(), {"title": "x"}, NOW) == {}

    def test_complete_sets_status_and_timestamp(self):
        result = resolve_completion(stored(Status.IN_PROGRESS), {"completed": True}, NOW)
        assert result == stored(Status.COMPLETED, True, NOW)

    def test_recomplete_keeps_original_timestamp(self):
        existing = stored(Status.COMPLETED, True, EARLIER)
        assert resolve_completion(existing, {"completed": True}, NOW)["completed_at"] == EARLIER

    def test_uncomplete_reverts_to_pending(self):
        existing = stored(Status.COMPLETED, True, EARLIER)
        assert resolve_completion(existing, {"completed": False}, NOW) == stored()

    def test_uncomplete_keeps_non_completed_status(self):
        result = resolve_completion(stored(Status.CANCELLED), {"completed": False}, NOW)
        assert result == stored(Status.CANCELLED)

    def test_status_completed_marks_completed(self):
        result = resolve_completion(stored(), {"status": "COMPLETED"}, NOW)
        assert result == stored(Status.COMPLETED, True, NOW)

    def test_status_away_from_completed_clears(self):
        existing = stored(Status.COMPLETED, True, EARLIER)
        result = resolve_completion(existing, {"status": Status.IN_PROGRESS}, NOW)
        assert result == stored(Status.IN_PROGRESS)

    def test_contradiction_rejected(self):
        with pytest.raises(ValidationError):
            resolve_completion(stored(), {"status": Status.PENDING, "completed": True}, NOW)

    def test_agreeing_pair_accepted(self):
        result = resolve_completion(stored(), {"status": Status.COMPLETED, "completed": True}, NOW)
        assert result["completed"] is True


class TestTransition:
    def test_transition_detection(self):
        assert is_completion_transition(None, {"completed": True}) is True
        assert is_completion_transition({"completed": False}, {"completed": True}) is True
        assert is_completion_transition({"completed": True}, {"completed": True}) is False
        assert is_completion_transition({"completed": True}, {"completed": False}) is False

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from cards.services.card_state import (
    get_card_state, has_ended, state_label, is_interaction_disabled, can_extend, validate_new_end_time,
)
from cards.services.store import round_pct
import pytest

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_prompt_is_featured_then_evergreen():
    assert get_card_state("prompt", NOW - timedelta(hours=71), None, now=NOW) == "featured"
    assert get_card_state("prompt", NOW - timedelta(hours=72), None, now=NOW) == "evergreen"


def test_qna_is_always_open():
    assert get_card_state("qna", NOW - timedelta(days=30), NOW - timedelta(days=1), now=NOW) == "open"


def test_deadline_boundary_counts_as_ended():
    assert get_card_state("poll", NOW, NOW, now=NOW) == "ended"
    assert get_card_state("poll", NOW, NOW + timedelta(seconds=1), now=NOW) == "active"
    assert has_ended(NOW, NOW)
    assert not has_ended(None, NOW)


def test_no_deadline_is_open_ended():
    assert get_card_state("challenge", NOW, None, now=NOW) == "open_ended"
    assert state_label("open_ended") == "Active"


def test_closed_opportunity_wins_over_deadline():
    state = get_card_state("opportunity", NOW, NOW + timedelta(days=3), closed_at=NOW, now=NOW)
    assert state == "closed"
    assert is_interaction_disabled(state, "opportunity")


def test_naive_timestamps_are_read_as_utc():
    naive_end = (NOW + timedelta(hours=1)).replace(tzinfo=None)
    assert get_card_state("poll", NOW, naive_end, now=NOW) == "active"


def test_interaction_disabled_only_for_ended_polls_and_challenges():
    assert is_interaction_disabled("ended", "poll")
    assert is_interaction_disabled("ended", "challenge")
    assert not is_interaction_disabled("ended", "opportunity")
    assert not is_interaction_disabled("evergreen", "prompt")


@pytest.mark.parametrize("post_type", ["media", "prompt", "qna"])
def test_unsupported_types_cannot_extend(post_type):
    d = can_extend(post_type, NOW + timedelta(days=1), 0, NOW)
    assert not d.allowed
    assert d.reason == "This card type does not support extensions"


def test_extend_checks_run_in_order():
    # Passed deadline is reported before the extension ceiling
    d = can_extend("poll", NOW - timedelta(minutes=1), 5, NOW)
    assert d.reason == "Cannot extend after end time has passed"
    assert can_extend("poll", None, 0, NOW).reason == "No deadline set to extend"
    assert can_extend("poll", NOW + timedelta(days=1), 1, NOW).reason == "Maximum 1 extension(s) already used"
    assert can_extend("poll", NOW + timedelta(minutes=5), 0, NOW).allowed


def test_challenge_lockout_window():
    assert not can_extend("challenge", NOW + timedelta(hours=1, minutes=59), 0, NOW).allowed
    assert can_extend("challenge", NOW + timedelta(hours=2), 0, NOW).allowed
    assert not can_extend("challenge", NOW + timedelta(days=2), 2, NOW).allowed


def test_opportunity_is_effectively_unlimited():
    assert can_extend("opportunity", NOW + timedelta(days=1), 998, NOW).allowed


def test_new_end_time_rules():
    end = NOW + timedelta(days=1)
    assert validate_new_end_time("poll", end, end) == "New end time must be after the current end time"
    assert validate_new_end_time("poll", end, end + timedelta(hours=23)) == "Minimum extension is 24 hours"
    assert validate_new_end_time("poll", end, end + timedelta(hours=24)) is None
    assert validate_new_end_time("poll", end, end + timedelta(hours=2), min_extension_hours=1) is None


def test_challenge_with_submissions_cannot_be_shortened():
    end = NOW + timedelta(days=3)
    msg = validate_new_end_time("challenge", end, end - timedelta(days=1), submission_count=1)
    assert msg == "Cannot shorten deadline after submissions have been received"
    msg = validate_new_end_time("challenge", end, end - timedelta(days=1), submission_count=0)
    assert msg == "New end time must be after the current end time"


def test_round_pct_half_up():
    assert round_pct(1, 3) == 33
    assert round_pct(2, 3) == 67
    assert round_pct(1, 8) == 13
    assert round_pct(0, 0) == 0

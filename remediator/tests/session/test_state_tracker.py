import random

import pytest

from remediator.app.session.state_tracker import SessionStateTracker


URL = "https://example.test/"


def test_new_tracker_is_empty_and_complete():
    tracker = SessionStateTracker(URL)

    assert tracker.get_current_url() == URL
    assert tracker.get_pending_violations() == []
    assert tracker.get_next_pending_violation() is None
    assert tracker.is_complete() is True
    assert tracker.is_valid() is True


def test_next_pending_is_a_peek():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a", "b"])

    assert tracker.get_next_pending_violation() == "a"
    assert tracker.get_next_pending_violation() == "a"
    assert tracker.get_pending_violations() == ["a", "b"]


def test_mark_fixed_moves_id_and_clears_active():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a", "b"])
    tracker.set_current_violation("a")

    assert tracker.mark_violation_fixed("a") is True

    assert tracker.get_pending_violations() == ["b"]
    assert tracker.get_fixed_violations() == ["a"]
    assert tracker.get_current_violation_id() is None
    assert tracker.get_retry_attempts() == 0


def test_mark_fixed_of_unknown_id_is_a_no_op():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a"])

    assert tracker.mark_violation_fixed("zzz") is False
    assert tracker.get_fixed_violations() == []


def test_skip_records_reason_and_keeps_attempts():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a"])
    tracker.set_current_violation("a")
    tracker.increment_retry("a", "first")
    tracker.increment_retry("a", "second")

    assert tracker.skip_violation("a", "gave up") is True

    assert tracker.get_skipped_violations() == ["a"]
    assert tracker.get_human_handoff_reason() == "gave up"
    assert tracker.get_retry_attempts_for_violation("a") == 2
    assert tracker.get_last_failure_reason("a") == "second"


def test_skip_without_prior_failure_uses_skip_reason():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a"])

    tracker.skip_violation("a", "handoff")

    assert tracker.get_last_failure_reason("a") == "handoff"


def test_increment_retry_tracks_active_count():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a", "b"])
    tracker.set_current_violation("a")

    assert tracker.increment_retry("a") == 1
    assert tracker.increment_retry("a", "why") == 2
    assert tracker.get_retry_attempts() == 2

    tracker.increment_retry("b")
    assert tracker.get_retry_attempts() == 2
    assert tracker.get_retry_attempts_for_violation("b") == 1


def test_three_strike_limit_is_reached_on_third_failure():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a"])

    tracker.increment_retry("a")
    tracker.increment_retry("a")
    assert tracker.has_reached_three_strike_limit("a") is False

    tracker.increment_retry("a")
    assert tracker.has_reached_three_strike_limit("a") is True


def test_custom_retry_limit():
    tracker = SessionStateTracker(URL, max_retry_attempts=5)

    for _ in range(4):
        tracker.increment_retry("a")

    assert tracker.has_reached_three_strike_limit("a") is False


def test_invalid_retry_limit_is_rejected():
    with pytest.raises(ValueError):
        SessionStateTracker(URL, max_retry_attempts=0)


def test_active_violation_must_be_pending():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a"])

    with pytest.raises(ValueError):
        tracker.set_current_violation("b")


def test_duplicate_pending_ids_are_rejected():
    tracker = SessionStateTracker(URL)

    with pytest.raises(ValueError):
        tracker.set_pending_violations(["a", "a"])


def test_settled_ids_cannot_become_pending_again():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a", "b"])
    tracker.mark_violation_fixed("a")

    with pytest.raises(ValueError):
        tracker.set_pending_violations(["a", "b"])


def test_summary_counts():
    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(["a", "b", "c"])
    tracker.mark_violation_fixed("a")
    tracker.skip_violation("b", "nope")

    assert tracker.get_summary() == {
        "total_processed": 2,
        "fixed_count": 1,
        "skipped_count": 1,
        "pending_count": 1,
    }


@pytest.mark.parametrize("seed", range(25))
def test_every_id_lives_in_exactly_one_collection(seed):
    rng = random.Random(seed)
    ids = [f"v{i}" for i in range(rng.randint(1, 15))]

    tracker = SessionStateTracker(URL)
    tracker.set_pending_violations(ids)

    while not tracker.is_complete():
        head = tracker.get_next_pending_violation()
        tracker.set_current_violation(head)

        op = rng.choice(["fix", "fail", "skip"])
        if op == "fix":
            tracker.mark_violation_fixed(head)
        elif op == "skip":
            tracker.skip_violation(head, "random skip")
        else:
            tracker.increment_retry(head, "random failure")
            if tracker.has_reached_three_strike_limit(head):
                tracker.skip_violation(head, "three strikes")

        pending = tracker.get_pending_violations()
        fixed = tracker.get_fixed_violations()
        skipped = tracker.get_skipped_violations()

        assert sorted(pending + fixed + skipped) == sorted(ids)
        assert tracker.is_valid() is True

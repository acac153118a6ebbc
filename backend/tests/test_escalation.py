"""Tests for time-based auto-escalation.

Tests:
  1. overdue item is escalated once, by the system actor
  2. two overlapping ticks record exactly one escalation
  3. items at the top level expire after ESCALATION_MAX_COUNT escalations
  4. expected races are skipped, anything else is counted as an error
  5. the in-process scheduler starts, ticks and stops cleanly
"""
import threading
from datetime import timedelta
from unittest.mock import MagicMock, patch

from app.core.exceptions import ConcurrentModification, InvalidTransition
from app.rules.types import SYSTEM_ACTOR, HistoryAction, ItemStatus
from app.services import approval as approval_svc
from app.services.escalation import EscalationScheduler, run_escalation_tick
from factories import FOREMAN, NOW, make_item


def test_not_overdue_items_are_left_alone(repo, rules):
    item = make_item(repo, "75000", rules)

    stats = run_escalation_tick(repo, now=NOW + timedelta(hours=71), rule_book=rules)

    assert stats == {"escalated": 0, "expired": 0, "skipped": 0, "errors": 0}
    assert repo.get(item.id).version == 1


def test_overdue_item_escalated_by_system(repo, rules):
    item = make_item(repo, "75000", rules)
    tick_at = item.due_at + timedelta(minutes=1)

    stats = run_escalation_tick(repo, now=tick_at, rule_book=rules)

    assert stats["escalated"] == 1
    stored = repo.get(item.id)
    assert stored.status == ItemStatus.escalated
    assert stored.current_level == 2
    assert stored.escalation_count == 1
    assert stored.due_at == tick_at + timedelta(hours=72)
    entry = stored.history[-1]
    assert entry.action == HistoryAction.escalated
    assert entry.actor_name == SYSTEM_ACTOR.name
    assert entry.comments.startswith("Auto-escalated")


def test_second_tick_on_same_due_date_is_a_no_op(repo, rules):
    item = make_item(repo, "75000", rules)
    tick_at = item.due_at + timedelta(minutes=1)

    run_escalation_tick(repo, now=tick_at, rule_book=rules)
    stats = run_escalation_tick(repo, now=tick_at, rule_book=rules)

    assert stats["escalated"] == 0
    assert len(repo.get(item.id).history) == 1


def test_overlapping_ticks_escalate_once(repo, rules):
    item = make_item(repo, "75000", rules)
    tick_at = item.due_at + timedelta(minutes=1)
    barrier = threading.Barrier(2)
    real_list_overdue = repo.list_overdue

    def _list_overdue_in_lockstep(now):
        # Both ticks see the same stale snapshot before either commits
        items = real_list_overdue(now)
        barrier.wait(timeout=5)
        return items

    results = []
    with patch.object(repo, "list_overdue", side_effect=_list_overdue_in_lockstep):
        threads = [
            threading.Thread(
                target=lambda: results.append(run_escalation_tick(repo, now=tick_at, rule_book=rules))
            )
            for _ in range(2)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

    assert sum(r["escalated"] for r in results) == 1
    stored = repo.get(item.id)
    escalations = [e for e in stored.history if e.action == HistoryAction.escalated]
    assert len(escalations) == 1
    assert stored.escalation_count == 1


def test_stale_snapshot_loses_race_and_skips(repo, rules):
    item = make_item(repo, "75000", rules)
    tick_at = item.due_at + timedelta(minutes=1)
    stale = repo.get(item.id)

    run_escalation_tick(repo, now=tick_at, rule_book=rules)
    # A second tick still holding the pre-escalation snapshot
    with patch.object(repo, "list_overdue", return_value=[stale]):
        stats = run_escalation_tick(repo, now=tick_at, rule_book=rules)

    assert stats["escalated"] == 0
    assert stats["skipped"] == 1
    assert repo.get(item.id).escalation_count == 1


def test_human_decision_racing_the_tick_wins(repo, rules):
    item = make_item(repo, "500", rules)
    tick_at = item.due_at + timedelta(minutes=1)
    stale = repo.get(item.id)
    approval_svc.act(repo, item.id, FOREMAN, "approve", now=tick_at, rule_book=rules)

    with patch.object(repo, "list_overdue", return_value=[stale]):
        stats = run_escalation_tick(repo, now=tick_at, rule_book=rules)

    assert stats["skipped"] == 1
    assert repo.get(item.id).status == ItemStatus.approved


def test_top_level_item_expires_after_max_escalations(repo, rules):
    item = make_item(repo, "500", rules)  # single level
    with patch("app.services.escalation.settings") as mock_settings:
        mock_settings.ESCALATION_MAX_COUNT = 2
        mock_settings.ESCALATION_MAX_RETRIES = 3
        for _ in range(2):
            now = repo.get(item.id).due_at + timedelta(seconds=1)
            assert run_escalation_tick(repo, now=now, rule_book=rules)["escalated"] == 1
        now = repo.get(item.id).due_at + timedelta(seconds=1)
        stats = run_escalation_tick(repo, now=now, rule_book=rules)

    assert stats["expired"] == 1
    stored = repo.get(item.id)
    assert stored.status == ItemStatus.expired
    assert stored.current_level == 1
    assert stored.decided_at == now
    assert [e.action for e in stored.history] == [
        HistoryAction.escalated, HistoryAction.escalated, HistoryAction.expired,
    ]


def test_expected_races_are_skipped_not_errors(rules):
    item = MagicMock()
    repo = MagicMock()
    repo.list_overdue.return_value = [item, item]
    with patch(
        "app.services.escalation._escalate_one",
        side_effect=[ConcurrentModification("x", 1), InvalidTransition("x", "approved", "escalate")],
    ):
        stats = run_escalation_tick(repo, now=NOW, rule_book=rules)
    assert stats == {"escalated": 0, "expired": 0, "skipped": 2, "errors": 0}


def test_unexpected_errors_are_counted_and_tick_continues(repo, rules):
    first = make_item(repo, "100", rules)
    second = make_item(repo, "200", rules)
    tick_at = second.due_at + timedelta(minutes=1)

    real_save = repo.save

    def _flaky_save(item, entry, expected_version):
        if item.id == first.id:
            raise RuntimeError("disk full")
        return real_save(item, entry, expected_version)

    with patch.object(repo, "save", side_effect=_flaky_save):
        stats = run_escalation_tick(repo, now=tick_at, rule_book=rules)

    assert stats["errors"] == 1
    assert stats["escalated"] == 1
    assert repo.get(second.id).escalation_count == 1


def test_stop_during_tick_lets_the_tick_finish(repo, rules):
    items = [make_item(repo, "100", rules) for _ in range(3)]
    tick_at = items[-1].due_at + timedelta(minutes=1)
    scheduler = EscalationScheduler(lambda: repo, tick_interval_seconds=3600, clock=lambda: tick_at)

    real_save = repo.save

    def _save_then_stop(item, entry, expected_version):
        saved = real_save(item, entry, expected_version)
        scheduler.stop(timeout=1)
        return saved

    with patch.object(repo, "save", side_effect=_save_then_stop), \
            patch("app.services.escalation.get_rule_book", return_value=rules):
        stats = scheduler.tick()

    assert stats["escalated"] == 3
    assert all(repo.get(i.id).escalation_count == 1 for i in items)


# ─── Scheduler thread ─────────────────────────────────────────────────────────

def test_scheduler_tick_uses_clock_and_repo_factory(repo, rules):
    item = make_item(repo, "100", rules)
    scheduler = EscalationScheduler(
        lambda: repo,
        tick_interval_seconds=3600,
        clock=lambda: item.due_at + timedelta(seconds=1),
    )
    with patch("app.services.escalation.get_rule_book", return_value=rules):
        stats = scheduler.tick()
    assert stats["escalated"] == 1


def test_scheduler_start_and_stop(repo, rules):
    ticked = threading.Event()
    scheduler = EscalationScheduler(lambda: repo, tick_interval_seconds=3600, clock=lambda: NOW)

    def _tick():
        ticked.set()
        return {}

    with patch.object(scheduler, "tick", side_effect=_tick):
        scheduler.start()
        assert ticked.wait(timeout=5)
        assert scheduler.is_running
        scheduler.start()  # second start is a no-op
        scheduler.stop(timeout=5)

    assert not scheduler.is_running


def test_scheduler_survives_failing_tick(repo):
    failed = threading.Event()
    scheduler = EscalationScheduler(lambda: repo, tick_interval_seconds=3600, clock=lambda: NOW)

    def _boom():
        failed.set()
        raise RuntimeError("boom")

    with patch.object(scheduler, "tick", side_effect=_boom):
        scheduler.start()
        assert failed.wait(timeout=5)
        assert scheduler.is_running
        scheduler.stop(timeout=5)

    assert not scheduler.is_running

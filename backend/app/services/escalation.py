"""Time-based escalation of overdue approval items.

``run_escalation_tick`` is the unit of work; it is driven either by Celery
beat (``app.workers.escalation_tasks``) or by the in-process
``EscalationScheduler`` thread.

Each overdue item is escalated with the system actor, bypassing the
authorization guard, through the same compare-and-set path humans use. The
version seen during the scan is the expected version, so two overlapping
ticks produce at most one escalation per due date: the loser gets
ConcurrentModification, re-reads, finds the item no longer overdue and
skips it.
"""
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from app.core.config import settings
from app.core.exceptions import ConcurrentModification, InvalidTransition, NotFound
from app.db.repository import ItemRepository
from app.rules.approval_rules import RuleBook, get_rule_book
from app.rules.state_machine import expire, transition
from app.rules.types import SYSTEM_ACTOR, Action, ApprovalItem
from app.services.approval import commit_transition

logger = logging.getLogger(__name__)


def run_escalation_tick(
    repo: ItemRepository,
    now: datetime | None = None,
    rule_book: RuleBook | None = None,
) -> dict:
    """Escalate (or expire) every overdue open item once.

    Returns:
        Stats dict: {escalated, expired, skipped, errors}.
    """
    now = now or datetime.now(timezone.utc)
    rule_book = rule_book or get_rule_book()
    stats = {"escalated": 0, "expired": 0, "skipped": 0, "errors": 0}

    overdue = repo.list_overdue(now)
    logger.info("escalation tick: %d overdue item(s) at %s", len(overdue), now.isoformat())

    for item in overdue:
        try:
            outcome = _escalate_one(repo, item, now, rule_book)
        except (ConcurrentModification, InvalidTransition) as exc:
            # Expected race: someone else advanced or closed the item
            logger.info("escalation skipped for item %s: %s", item.id, exc)
            stats["skipped"] += 1
            continue
        except Exception:
            logger.exception("escalation: unexpected error on item %s", item.id)
            stats["errors"] += 1
            continue
        stats[outcome] += 1

    logger.info(
        "escalation tick complete — escalated=%d expired=%d skipped=%d errors=%d",
        stats["escalated"], stats["expired"], stats["skipped"], stats["errors"],
    )
    return stats


def _escalate_one(repo: ItemRepository, item: ApprovalItem, now: datetime, rule_book: RuleBook) -> str:
    """Returns "escalated", "expired" or "skipped"."""
    snapshot = item
    for attempt in range(settings.ESCALATION_MAX_RETRIES + 1):
        if not snapshot.is_overdue(now):
            return "skipped"

        if (
            snapshot.current_level >= snapshot.max_level
            and snapshot.escalation_count >= settings.ESCALATION_MAX_COUNT
        ):
            new_item, entry = expire(
                snapshot, now, SYSTEM_ACTOR,
                reason=f"Expired after {snapshot.escalation_count} escalations without a decision",
            )
            outcome = "expired"
        else:
            new_item, entry = transition(
                snapshot, Action.escalate, SYSTEM_ACTOR, now, rule_book.ladder,
                comment=f"Auto-escalated: overdue since {snapshot.due_at.isoformat()}",
                enforce_guard=False,
            )
            outcome = "escalated"

        try:
            commit_transition(repo, snapshot, new_item, entry)
            return outcome
        except ConcurrentModification:
            if attempt >= settings.ESCALATION_MAX_RETRIES:
                raise
            try:
                snapshot = repo.get(item.id)
            except NotFound:
                return "skipped"
            logger.info(
                "escalation retry %d for item %s (now v%d, due %s)",
                attempt + 1, item.id, snapshot.version, snapshot.due_at.isoformat(),
            )
    return "skipped"


class EscalationScheduler:
    """In-process escalation loop for deployments without Celery beat.

    ``stop()`` lets a running tick work through every overdue item it listed,
    then ends the loop before another tick starts.
    """

    def __init__(
        self,
        repo_factory: Callable[[], ItemRepository],
        tick_interval_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._repo_factory = repo_factory
        self._tick_interval = tick_interval_seconds or settings.ESCALATION_TICK_SECONDS
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self) -> dict:
        return run_escalation_tick(self._repo_factory(), now=self._clock())

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="escalation-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("Escalation scheduler started (tick every %ss)", self._tick_interval)

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("Escalation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Escalation tick failed")
            self._stop_event.wait(timeout=self._tick_interval)

"""Tests for the SQLAlchemy item repository.

Uses mocked sessions following the existing test patterns: the conditional
UPDATE's rowcount decides between success, NotFound and ConcurrentModification.
"""
import uuid
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConcurrentModification, NotFound
from app.db.sql_repository import (
    SqlItemRepository,
    _entry_to_record,
    _item_to_record,
    _record_to_item,
)
from app.models.approval import ApprovalHistoryRecord, ApprovalItemRecord
from app.rules.state_machine import transition
from app.rules.types import Action, ItemStatus
from factories import FOREMAN, NOW, make_item, site_rule_book


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _mock_session_factory(db: MagicMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__enter__.return_value = db
    factory.return_value.__exit__.return_value = False
    return factory


def _result(rowcount=None, scalar=None, first=None) -> MagicMock:
    result = MagicMock()
    result.rowcount = rowcount
    result.scalar.return_value = scalar
    result.scalars.return_value.first.return_value = first
    return result


def _pending_transition():
    rules = site_rule_book()
    item = make_item(amount="75000", rule_book=rules)
    new_item, entry = transition(item, Action.approve, FOREMAN, NOW, rules.ladder)
    return item, new_item, entry


# ─── Writes ───────────────────────────────────────────────────────────────────

@patch("app.db.sql_repository.audit_svc.log")
def test_add_inserts_record_and_audit_entry(mock_log):
    db = MagicMock()
    repo = SqlItemRepository(_mock_session_factory(db))
    item = make_item(amount="500", rule_book=site_rule_book())

    repo.add(item, actor_name="Pat Submitter", actor_role="Foreman")

    record = db.add.call_args.args[0]
    assert isinstance(record, ApprovalItemRecord)
    assert record.id == item.id
    assert record.version == 1
    assert record.escalation_after_seconds == 24 * 3600
    db.commit.assert_called_once()
    kwargs = mock_log.call_args.kwargs
    assert kwargs["action"] == "approval_item.created"
    assert kwargs["entity_id"] == item.id
    assert kwargs["actor_name"] == "Pat Submitter"
    assert kwargs["actor_role"] == "Foreman"
    assert kwargs["rule_version"] == "site-test-1"


def test_intake_audits_the_calling_actor():
    repo = MagicMock()

    make_item(repo, "500", site_rule_book(), submitted_by="Pat Submitter", created_by=FOREMAN)

    kwargs = repo.add.call_args.kwargs
    assert kwargs["actor_name"] == FOREMAN.name
    assert kwargs["actor_role"] == FOREMAN.role


def test_save_appends_history_when_version_matches():
    item, new_item, entry = _pending_transition()
    db = MagicMock()
    db.execute.return_value = _result(rowcount=1)
    repo = SqlItemRepository(_mock_session_factory(db))

    with patch.object(repo, "get", return_value=new_item) as mock_get:
        saved = repo.save(new_item, entry, expected_version=item.version)

    assert saved is new_item
    mock_get.assert_called_once_with(item.id)
    history = db.add.call_args.args[0]
    assert isinstance(history, ApprovalHistoryRecord)
    assert history.item_id == item.id
    assert history.sequence == 1
    assert history.action == "approved"
    db.commit.assert_called_once()
    db.rollback.assert_not_called()


def test_save_version_mismatch_raises_concurrent_modification():
    item, new_item, entry = _pending_transition()
    db = MagicMock()
    db.execute.side_effect = [_result(rowcount=0), _result(scalar=1)]
    repo = SqlItemRepository(_mock_session_factory(db))

    with pytest.raises(ConcurrentModification) as exc_info:
        repo.save(new_item, entry, expected_version=item.version)

    assert exc_info.value.expected_version == 1
    db.rollback.assert_called_once()
    db.add.assert_not_called()
    db.commit.assert_not_called()


def test_save_unknown_item_raises_not_found():
    item, new_item, entry = _pending_transition()
    db = MagicMock()
    db.execute.side_effect = [_result(rowcount=0), _result(scalar=0)]
    repo = SqlItemRepository(_mock_session_factory(db))

    with pytest.raises(NotFound):
        repo.save(new_item, entry, expected_version=item.version)


def test_history_sequence_clash_maps_to_concurrent_modification():
    item, new_item, entry = _pending_transition()
    db = MagicMock()
    db.execute.return_value = _result(rowcount=1)
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
    repo = SqlItemRepository(_mock_session_factory(db))

    with pytest.raises(ConcurrentModification):
        repo.save(new_item, entry, expected_version=item.version)
    db.rollback.assert_called_once()


# ─── Reads ────────────────────────────────────────────────────────────────────

def test_get_missing_item_raises_not_found():
    db = MagicMock()
    db.execute.return_value = _result(first=None)
    repo = SqlItemRepository(_mock_session_factory(db))

    with pytest.raises(NotFound):
        repo.get(uuid.uuid4())


def test_record_mapping_preserves_snapshot_and_history():
    item, new_item, entry = _pending_transition()
    record = _item_to_record(new_item)
    record.history = [_entry_to_record(new_item.id, entry)]

    restored = _record_to_item(record)

    assert restored.id == new_item.id
    assert restored.amount == new_item.amount
    assert restored.status == ItemStatus.pending
    assert restored.current_level == 2
    assert restored.max_level == 3
    assert restored.escalation_after == timedelta(hours=72)
    assert restored.allow_batch is False
    assert restored.version == 2
    assert restored.history == (entry,)

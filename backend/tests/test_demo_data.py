"""Tests for the demo-data generator used by scripts/seed.py."""
import random

from app.db.repository import InMemoryItemRepository
from app.rules.types import HistoryAction
from factories import NOW, finance_rule_book
from scripts.seed import generate_demo_items


def test_generated_items_have_consistent_histories(repo):
    rules = finance_rule_book()

    items = generate_demo_items(repo, rules, count=40, rng=random.Random(7), now=NOW)

    assert len(items) == 40
    for item in items:
        assert 1 <= item.current_level <= item.max_level
        assert rules.resolve(item.amount).name == item.tier
        assert [e.sequence for e in item.history] == list(range(1, len(item.history) + 1))
        assert all(e.timestamp < NOW for e in item.history)
        approved_levels = [e.level for e in item.history if e.action == HistoryAction.approved]
        assert approved_levels == sorted(set(approved_levels))


def test_same_seed_same_data(repo):
    rules = finance_rule_book()
    first = generate_demo_items(repo, rules, 10, random.Random(1), now=NOW)
    second = generate_demo_items(InMemoryItemRepository(), rules, 10, random.Random(1), now=NOW)

    assert [(i.reference, i.amount, i.status) for i in first] == \
        [(i.reference, i.amount, i.status) for i in second]

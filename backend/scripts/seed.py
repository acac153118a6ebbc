"""Seed script — fills the approval queue with demo items for local development.

Items are created through the service layer and then pushed through a random
but legal sequence of actions, so every seeded history is one the engine
could have produced itself.

Run: python scripts/seed.py [count] [--seed N]
"""
import argparse
import random
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.core.exceptions import ApprovalError
from app.db.repository import ItemRepository
from app.rules.approval_rules import RuleBook, get_rule_book
from app.rules.types import Action, Actor

CONTRACTORS = ["ABC Construction", "XYZ Plumbing", "Elite Electrical", "Metro HVAC", "Prime Contractors"]
CATEGORIES = ["materials", "labor", "equipment", "services", "other"]

# Relative odds of what the current approver does with an item
NEXT_ACTION = [(Action.approve, 70), (Action.comment, 15), (Action.escalate, 8), (Action.reject, 7)]


def generate_demo_items(
    repo: ItemRepository,
    rule_book: RuleBook,
    count: int,
    rng: random.Random,
    now: datetime | None = None,
) -> list:
    """Create ``count`` items submitted over the last 30 days and act on some of them."""
    from app.services import approval as approval_svc

    now = now or datetime.now(timezone.utc)
    actions, weights = zip(*NEXT_ACTION)
    created = []

    for _ in range(count):
        submitted_at = now - timedelta(days=rng.uniform(0, 30))
        item = approval_svc.create_item(
            repo,
            amount=rng.randint(1000, 150000),
            category=rng.choice(CATEGORIES),
            reference=f"INV-{rng.randint(0, 9999):04d}",
            description=f"{rng.choice(CATEGORIES)} work for project {rng.randint(0, 999)}",
            contractor_name=rng.choice(CONTRACTORS),
            submitted_by="seed",
            project_code=f"PRJ-{rng.randint(0, 999):03d}",
            attachments=[f"attachment-{j + 1}.pdf" for j in range(rng.randint(1, 4))],
            now=submitted_at,
            rule_book=rule_book,
        )

        # Leave roughly a third untouched at level 1
        acted_at = submitted_at
        steps = rng.choice([0, 0, 1, 2, 3, 4])
        for _ in range(steps):
            current = repo.get(item.id)
            if current.is_terminal:
                break
            acted_at += timedelta(minutes=rng.randint(5, 60 * 30))
            if acted_at >= now:
                break
            role = rule_book.ladder.role_at(current.current_level)
            actor = Actor(name=f"Demo {role}", role=role)
            action = rng.choices(actions, weights=weights)[0]
            try:
                approval_svc.act(
                    repo, item.id, actor, action,
                    comment="Seeded" if action is not Action.approve else None,
                    signature="demo-signature" if action is Action.approve and current.requires_signature else None,
                    now=acted_at,
                    rule_book=rule_book,
                )
            except ApprovalError as exc:
                print(f"  [warn] {item.reference}: {exc}")
                break

        created.append(repo.get(item.id))
    return created


def seed(count: int, seed_value: int | None) -> None:
    from app.db.session import SessionLocal
    from app.db.sql_repository import SqlItemRepository

    rng = random.Random(seed_value)
    repo = SqlItemRepository(SessionLocal)
    items = generate_demo_items(repo, get_rule_book(), count, rng)

    for item in items:
        print(
            f"  [new]  {item.reference} {item.amount:>12} {item.tier:<10} "
            f"level {item.current_level}/{item.max_level} {item.status.value}"
        )
    print(f"Seeded {len(items)} approval items.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo approval items")
    parser.add_argument("count", nargs="?", type=int, default=25)
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for repeatable data")
    args = parser.parse_args()
    seed(args.count, args.seed)

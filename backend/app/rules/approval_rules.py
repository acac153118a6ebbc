"""Amount-tiered approval rules and the resolver that picks one per amount.

A rule book is validated once when it is built; after that ``resolve`` is pure
and total for every non-negative amount. Bounds are inclusive and in cents:
each tier starts exactly one cent above the previous tier's upper bound, so a
boundary amount (e.g. 5000.00) always resolves to the lower tier.
"""
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path

from app.core.exceptions import InvalidAmount, NoMatchingRule
from app.rules.roles import RoleLadder

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_cents(amount) -> Decimal:
    """Quantize an amount to cents (half-up). Raises InvalidAmount on junk or negatives."""
    try:
        value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"Invalid amount {amount!r}.") from exc
    if not value.is_finite() or value < 0:
        raise InvalidAmount(f"Amount must be a non-negative number, got {amount!r}.")
    return value


# ─── Rule ───

@dataclass(frozen=True)
class ApprovalRule:
    name: str
    min_amount: Decimal
    max_amount: Decimal | None  # None = unbounded
    required_roles: tuple[str, ...]
    auto_escalation: timedelta
    requires_signature: bool = False
    allow_batch: bool = True

    @property
    def max_level(self) -> int:
        return len(self.required_roles)

    def covers(self, amount: Decimal) -> bool:
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount <= self.max_amount


# ─── Default tiers: (name, min, max, roles, escalation hours, signature, batch) ───

DEFAULT_RULE_VERSION = "builtin-1"

DEFAULT_TIERS = [
    ("Standard", "0.00", "5000.00", ["Manager"], 24, False, True),
    ("Elevated", "5000.01", "25000.00", ["Manager", "Senior Manager"], 48, True, True),
    ("Executive", "25000.01", "100000.00",
     ["Manager", "Senior Manager", "Finance Director"], 72, True, False),
    ("Board", "100000.01", None,
     ["Manager", "Senior Manager", "Finance Director", "CEO"], 96, True, False),
]


def _rule_from_tuple(row) -> ApprovalRule:
    name, lo, hi, roles, hours, signature, batch = row
    return ApprovalRule(
        name=name,
        min_amount=Decimal(lo),
        max_amount=Decimal(hi) if hi is not None else None,
        required_roles=tuple(roles),
        auto_escalation=timedelta(hours=hours),
        requires_signature=signature,
        allow_batch=batch,
    )


# ─── Rule book ───

class RuleBook:
    """Validated, ordered, non-overlapping set of rules covering [0, ∞)."""

    def __init__(self, rules, ladder: RoleLadder, version: str = DEFAULT_RULE_VERSION):
        self.ladder = ladder
        self.version = version
        self.rules: tuple[ApprovalRule, ...] = tuple(sorted(rules, key=lambda r: r.min_amount))
        self._validate()

    def _validate(self) -> None:
        if not self.rules:
            raise NoMatchingRule("No approval rules configured.")

        first = self.rules[0]
        if first.min_amount != 0:
            raise NoMatchingRule(
                f"Rule '{first.name}' starts at {first.min_amount}; amounts from 0 are uncovered."
            )

        for prev, nxt in zip(self.rules, self.rules[1:]):
            if prev.max_amount is None:
                raise NoMatchingRule(
                    f"Rule '{prev.name}' is unbounded but is followed by '{nxt.name}'."
                )
            expected = prev.max_amount + CENT
            if nxt.min_amount > expected:
                raise NoMatchingRule(
                    f"Gap between '{prev.name}' (max {prev.max_amount}) "
                    f"and '{nxt.name}' (min {nxt.min_amount})."
                )
            if nxt.min_amount < expected:
                raise NoMatchingRule(
                    f"Rules '{prev.name}' and '{nxt.name}' overlap at {nxt.min_amount}."
                )

        if self.rules[-1].max_amount is not None:
            raise NoMatchingRule(
                f"Last rule '{self.rules[-1].name}' ends at {self.rules[-1].max_amount}; "
                "amounts above it are uncovered."
            )

        for rule in self.rules:
            if rule.max_amount is not None and rule.max_amount < rule.min_amount:
                raise NoMatchingRule(f"Rule '{rule.name}' has max below min.")
            if not rule.required_roles:
                raise NoMatchingRule(f"Rule '{rule.name}' has no required roles.")
            if rule.auto_escalation <= timedelta(0):
                raise NoMatchingRule(f"Rule '{rule.name}' needs a positive escalation window.")
            # Level N of every tier must be the ladder's role N
            for level, role in enumerate(rule.required_roles, start=1):
                if self.ladder.level_of(role) != level:
                    raise NoMatchingRule(
                        f"Rule '{rule.name}' requires '{role}' at level {level}, "
                        f"but the role ladder is {list(self.ladder.roles)}."
                    )

    def resolve(self, amount) -> ApprovalRule:
        """Return the single rule covering ``amount``."""
        value = to_cents(amount)
        for rule in self.rules:
            if rule.covers(value):
                return rule
        # Unreachable once validated
        raise NoMatchingRule(f"No approval rule covers amount {value}.")

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def default_rule_book(ladder: RoleLadder | None = None) -> RuleBook:
    ladder = ladder or RoleLadder(["Manager", "Senior Manager", "Finance Director", "CEO"])
    return RuleBook([_rule_from_tuple(row) for row in DEFAULT_TIERS], ladder)


def load_rule_book_file(path: str | Path) -> RuleBook:
    """Load a rule book from JSON.

    Expected shape::

        {
          "version": "2026-01",
          "roles": ["Foreman", "Site Supervisor", "Operations Manager"],
          "tiers": [
            {"name": "Small", "min_amount": "0.00", "max_amount": "10000.00",
             "required_roles": ["Foreman"], "auto_escalation_hours": 24,
             "requires_signature": false, "allow_batch": true},
            ...
          ]
        }
    """
    try:
        data = json.loads(Path(path).read_text())
        ladder = RoleLadder(data["roles"])
        rules = [
            ApprovalRule(
                name=t["name"],
                min_amount=Decimal(str(t["min_amount"])),
                max_amount=Decimal(str(t["max_amount"])) if t.get("max_amount") is not None else None,
                required_roles=tuple(t["required_roles"]),
                auto_escalation=timedelta(hours=float(t["auto_escalation_hours"])),
                requires_signature=bool(t.get("requires_signature", False)),
                allow_batch=bool(t.get("allow_batch", True)),
            )
            for t in data["tiers"]
        ]
    except (OSError, ValueError, KeyError, TypeError, InvalidOperation) as exc:
        raise NoMatchingRule(f"Could not load approval rules from {path}: {exc}") from exc
    return RuleBook(rules, ladder, version=str(data.get("version", path)))


@lru_cache
def get_rule_book() -> RuleBook:
    """Build the process-wide rule book from settings (validated once)."""
    from app.core.config import settings

    if settings.APPROVAL_RULES_FILE:
        book = load_rule_book_file(settings.APPROVAL_RULES_FILE)
    else:
        book = default_rule_book(RoleLadder(settings.role_ladder_list))
    logger.info(
        "Approval rules loaded: version=%s tiers=%d ladder=%s",
        book.version, len(book), list(book.ladder.roles),
    )
    return book

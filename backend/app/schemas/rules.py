"""Pydantic schemas for the approval rule book."""
from decimal import Decimal

from pydantic import BaseModel

from app.rules.approval_rules import ApprovalRule, RuleBook


class ApprovalRuleOut(BaseModel):
    name: str
    min_amount: Decimal
    max_amount: Decimal | None
    required_roles: list[str]
    max_level: int
    auto_escalation_hours: float
    requires_signature: bool
    allow_batch: bool

    @classmethod
    def from_rule(cls, rule: ApprovalRule) -> "ApprovalRuleOut":
        return cls(
            name=rule.name,
            min_amount=rule.min_amount,
            max_amount=rule.max_amount,
            required_roles=list(rule.required_roles),
            max_level=rule.max_level,
            auto_escalation_hours=rule.auto_escalation.total_seconds() / 3600,
            requires_signature=rule.requires_signature,
            allow_batch=rule.allow_batch,
        )


class RuleBookOut(BaseModel):
    version: str
    role_ladder: list[str]
    rules: list[ApprovalRuleOut]

    @classmethod
    def from_book(cls, book: RuleBook) -> "RuleBookOut":
        return cls(
            version=book.version,
            role_ladder=list(book.ladder.roles),
            rules=[ApprovalRuleOut.from_rule(r) for r in book],
        )

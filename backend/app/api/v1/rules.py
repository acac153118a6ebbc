"""Approval rule book API.

Endpoints:
  GET /rules — active rule book: version, role ladder and tier table
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.deps import get_current_actor, get_rules
from app.rules.approval_rules import RuleBook
from app.rules.types import Actor
from app.schemas.rules import RuleBookOut

router = APIRouter()


@router.get("", response_model=RuleBookOut, summary="Active approval tiers and role ladder")
def get_rule_book(
    rules: Annotated[RuleBook, Depends(get_rules)],
    _actor: Annotated[Actor, Depends(get_current_actor)],
):
    return RuleBookOut.from_book(rules)

"""Authorization guard — may this actor act on this item right now?"""
from app.rules.roles import RoleLadder
from app.rules.types import Actor, ApprovalItem


def can_act(item: ApprovalItem, actor: Actor, ladder: RoleLadder) -> bool:
    """True iff the item is open and the actor's level equals the item's current level.

    Equality, not ">=": a more senior role cannot jump the queue.
    """
    return item.is_open and ladder.level_of(actor.role) == item.current_level


def can_comment(item: ApprovalItem, actor: Actor, ladder: RoleLadder) -> bool:
    """Any ladder role may comment on an item that is not closed."""
    return not item.is_terminal and ladder.level_of(actor.role) > 0

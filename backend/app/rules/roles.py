"""Role ladder — ordered approver roles; a role's level is its 1-based position."""
from app.core.exceptions import NoMatchingRule


class RoleLadder:
    """Immutable ordered list of role names.

    Level lookups are case-sensitive exact matches. Unknown roles (including the
    scheduler's "automation" role) are level 0 and never match an item's level.
    """

    def __init__(self, roles):
        roles = tuple(roles)
        if not roles:
            raise NoMatchingRule("Role ladder is empty.")
        if any(not r or not r.strip() for r in roles):
            raise NoMatchingRule("Role ladder contains a blank role name.")
        if len(set(roles)) != len(roles):
            raise NoMatchingRule(f"Role ladder has duplicate roles: {list(roles)}")
        self._roles = roles
        self._levels = {role: i + 1 for i, role in enumerate(roles)}

    @property
    def roles(self) -> tuple[str, ...]:
        return self._roles

    def level_of(self, role: str) -> int:
        return self._levels.get(role, 0)

    def role_at(self, level: int) -> str:
        if level < 1 or level > len(self._roles):
            raise IndexError(f"No role at level {level} (ladder has {len(self._roles)}).")
        return self._roles[level - 1]

    def __len__(self) -> int:
        return len(self._roles)

    def __repr__(self) -> str:
        return f"RoleLadder({list(self._roles)!r})"

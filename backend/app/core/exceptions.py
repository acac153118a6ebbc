"""Typed errors raised by the approval engine.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer maps it to. Callers must be able to tell these apart:

    Unauthorized            - you are not the approver for the current level
    InvalidTransition       - the item is closed (or the action is not allowed now)
    ConcurrentModification  - the item changed underneath you; re-read and retry
"""


class ApprovalError(Exception):
    """Base class for all approval engine errors."""

    code: str = "APPROVAL_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NoMatchingRule(ApprovalError):
    """Rule configuration does not cover an amount (fatal at startup)."""

    code = "NO_MATCHING_RULE"
    status_code = 500


class InvalidAmount(ApprovalError):
    code = "INVALID_AMOUNT"
    status_code = 422


class NotFound(ApprovalError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Approval item {item_id} not found.")


class Unauthorized(ApprovalError):
    code = "UNAUTHORIZED"
    status_code = 403

    def __init__(self, item_id, actor_role: str, required_level: int):
        self.item_id = item_id
        self.actor_role = actor_role
        self.required_level = required_level
        super().__init__(
            f"Role '{actor_role}' may not act on item {item_id} "
            f"(current level {required_level})."
        )


class InvalidTransition(ApprovalError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, item_id, status: str, action: str):
        self.item_id = item_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} item {item_id} in status '{status}'."
        )


class ConcurrentModification(ApprovalError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 412

    def __init__(self, item_id, expected_version: int):
        self.item_id = item_id
        self.expected_version = expected_version
        super().__init__(
            f"Item {item_id} was modified by another request "
            f"(expected version {expected_version}). Reload and retry."
        )


class BatchNotAllowed(ApprovalError):
    code = "BATCH_NOT_ALLOWED"
    status_code = 422

    def __init__(self, item_id, tier: str):
        self.item_id = item_id
        self.tier = tier
        super().__init__(
            f"Item {item_id} belongs to tier '{tier}', which does not allow batch actions."
        )

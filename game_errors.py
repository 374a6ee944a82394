"""
Typed failures raised by the engine's action entry points.

Every action validates its preconditions before touching the session, so a
raised GameActionError always means nothing was mutated.  main.py turns
these into JSON error results.
"""


class GameActionError(Exception):
    status_code = 400
    kind = "game_action_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InsufficientBalanceError(GameActionError):
    kind = "insufficient_balance"


class NotEmptyError(GameActionError):
    status_code = 409
    kind = "not_empty"


class InvalidStateError(GameActionError):
    kind = "invalid_state"


class ItemNotFoundError(InvalidStateError):
    status_code = 404
    kind = "item_not_found"


class CapacityExceededError(GameActionError):
    status_code = 409
    kind = "capacity_exceeded"


class DataIntegrityError(GameActionError):
    """The catalog cannot satisfy a roll; a catalog authoring bug, not a user error."""

    status_code = 500
    kind = "data_integrity"

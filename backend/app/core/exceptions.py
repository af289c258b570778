"""Domain errors raised by the commission and payables services.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""


class CommissionEngineError(Exception):
    """Base class for all commission/payables errors."""


class ValidationError(CommissionEngineError, ValueError):
    """Malformed input, rejected before any write."""


class NotFoundError(CommissionEngineError):
    """Referenced commission, obligation or collaborator record does not exist."""


class StateTransitionError(CommissionEngineError):
    """Requested change would move a record backwards or break a link."""


class PersistenceError(CommissionEngineError):
    """A database write failed; the current step was rolled back."""

"""Domain error taxonomy."""


class MessLedgerError(Exception):
    """Base class for caller-visible ledger errors."""


class ValidationError(MessLedgerError):
    """Input rejected before any write."""


class PermissionDeniedError(MessLedgerError):
    """Actor is not allowed to perform the action."""


class NotFoundError(MessLedgerError):
    """Unknown mess, member or record id."""


class LockedError(MessLedgerError):
    """Meal toggle attempted after the cutoff for today."""


class StateConflictError(MessLedgerError):
    """Record is not in the state the transition requires."""


class ExternalServiceError(MessLedgerError):
    """Push delivery or token cleanup failed."""

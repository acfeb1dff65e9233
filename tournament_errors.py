"""
Tournament engine errors
Every error carries a human readable message for the admin caller
"""


class TournamentError(Exception):
    """Base error for all engine operations"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TournamentError):
    """Data shape precondition not met. Raised before any write."""


class LifecycleError(ValidationError):
    """Operation invoked while the tournament is in the wrong status"""


class NotFoundError(ValidationError):
    """Tournament, fixture or player id does not exist"""


class ConstraintError(TournamentError):
    """No feasible assignment exists (e.g. referee candidates exhausted)"""


class StoreError(TournamentError):
    """The persistence collaborator failed a call"""

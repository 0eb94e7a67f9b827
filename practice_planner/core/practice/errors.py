"""
Errors raised by practice planning operations.

Every error aborts the batch it was raised in. Messages are meant for
people: they name the set, practice, location, lane or round at fault.
"""


class PracticePlanningError(Exception):
    """Base class for errors surfaced to a batch caller."""
    pass


class NotFoundError(PracticePlanningError):
    """A referenced set, practice or location does not exist."""
    pass


class StructuralViolationError(PracticePlanningError):
    """
    The staged state breaks a round/lane invariant.

    Duplicate round, missing lane, duplicate roster position, or a batch
    spanning more than one practice.
    """
    pass


class ScopeError(PracticePlanningError):
    """The practice is outside the caller's club, or private to someone else."""
    pass


class BusinessRuleError(PracticePlanningError):
    """The change is well-formed but not allowed, e.g. removing an anchor round."""
    pass

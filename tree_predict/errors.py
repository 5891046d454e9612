"""Exceptions raised inside the prediction engine.

The service translates these into ServiceResult codes at its public boundary.
"""


class PredictionError(Exception):
    """Base class for prediction engine errors."""


class ForbiddenError(PredictionError):
    """Caller lacks admin capability for the tree."""


class NotFoundError(PredictionError):
    """Tree, person or prediction does not exist."""


class InvalidStateError(PredictionError):
    """Accept or dismiss attempted on a prediction that is no longer New."""


class PersistenceConflict(PredictionError):
    """A write collided with an existing record (unique constraint)."""


class RuleExecutionError(PredictionError):
    """A detection rule failed while scanning a tree."""

    def __init__(self, rule_id: str, cause: BaseException):
        super().__init__(f"Rule {rule_id} failed: {cause}")
        self.rule_id = rule_id
        self.cause = cause


class ScanCancelled(PredictionError):
    """Stop was requested through the application hooks."""

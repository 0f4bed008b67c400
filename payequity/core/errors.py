"""Exception hierarchy for the import pipeline and risk engine."""
from __future__ import annotations


class PayEquityError(Exception):
    """Base class for domain errors raised by the service layer."""


class ImportPipelineError(PayEquityError):
    """Raised when an uploaded source file cannot be processed."""


class EmptyInputError(ImportPipelineError):
    """The source file contains no rows at all."""


class SourceFileError(ImportPipelineError):
    """The source file is missing or cannot be read."""


class MappingValidationError(ImportPipelineError):
    """A submitted column mapping references unknown fields or columns."""


class InvalidTransitionError(PayEquityError):
    """A job or run was asked to move to a state it cannot reach."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(f"{entity} cannot move from {current} to {target}")
        self.entity = entity
        self.current = current
        self.target = target


class NotFoundError(PayEquityError):
    """The requested entity does not exist within the caller's organization."""

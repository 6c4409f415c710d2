"""
Workflow error taxonomy.
Each error carries the HTTP status the API layer should answer with.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all errors raised by the workflow core."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.details: Optional[dict] = None

    @property
    def name(self) -> str:
        return type(self).__name__


class ValidationError(WorkflowError):
    """Missing or malformed input. Nothing was mutated."""

    status_code = 400


class NotFoundError(WorkflowError):
    """A referenced record, assignment or user does not exist."""

    status_code = 404


class ForbiddenError(WorkflowError):
    """The actor has no rights over this specific resource."""

    status_code = 403


class ConflictError(WorkflowError):
    """
    Business rule violation: reviewer outside the QA teams, reassignment of a
    completed record, double submission, or a lost check-and-act race.
    """

    status_code = 400


class DependencyError(WorkflowError):
    """The blob store or the record store failed underneath an operation."""

    status_code = 502


class BlobStoreError(DependencyError):
    """A blob store call failed."""


class BlobNotFoundError(BlobStoreError):
    """The requested blob key does not exist."""

    status_code = 404

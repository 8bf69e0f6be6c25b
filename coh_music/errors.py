"""
Coh Music Site - Domain Errors

Raised by the release timing resolver and the ordering manager.  Route
handlers translate them into HTTP 400 / 404 responses.
"""


class ContentError(Exception):
    """Base class for content errors surfaced to API callers."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_issues(self) -> dict[str, list[str]]:
        """Field-level issues in the shape the admin forms expect."""
        if not self.field:
            return {}
        return {self.field: [self.message]}


class InvalidInputError(ContentError):
    """A required value could not be parsed.  Nothing is persisted."""


class NotFoundError(ContentError):
    """A referenced record does not exist in the live collection."""

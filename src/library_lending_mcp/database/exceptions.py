"""Exception hierarchy shared by the database layer and the MCP handlers."""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """Raised when a referenced entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when a caller-supplied key is already in use."""


class DuplicateReturnError(DuplicateError):
    """Raised when an issue record has already been returned."""


class DatabaseOperationError(RepositoryException):
    """Raised when a query or commit fails at the database level.

    Lock timeouts on a contended book surface here, which callers treat as a
    serialization failure.
    """

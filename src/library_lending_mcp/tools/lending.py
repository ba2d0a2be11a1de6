"""
Lending tools for the Library Lending MCP Server.

Tools that change library state through the lending ledger:
1. issue_book: Record a loan and take the book off the shelf
2. return_book: Record a return and put the book back on the shelf

An issue request for a book that is already on loan is declined with a
normal (non-error) response carrying ``status: unavailable``. Unknown
entities, reused ids and repeated returns are reported as tool errors.
"""

import logging
from typing import Any

from fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field, ValidationError

from ..database.lending_repository import (
    IssueRequestSchema,
    LendingRepository,
    ReturnRequestSchema,
)
from ..database.repository import (
    DuplicateError,
    DuplicateReturnError,
    NotFoundError,
    RepositoryException,
)
from ..database.session import session_scope
from ..models.book import ISBN_PATTERN
from ..models.member import ID_PATTERN
from ..observability import trace_tool

logger = logging.getLogger(__name__)


def _tool_error(error_type: str, details: str) -> ToolError:
    """Build the error reported to the client as an ``isError`` result."""
    return ToolError(f"{error_type}: {details}")


def _log_operation(operation: str, **kwargs) -> None:
    """Log operation details for audit trail."""
    logger.info(
        "Operation: %s | Details: %s", operation, " | ".join(f"{k}={v}" for k, v in kwargs.items())
    )


def _repository_error(operation: str, error: RepositoryException) -> ToolError:
    if isinstance(error, NotFoundError):
        logger.info("%s failed - entity not found: %s", operation, error)
        return _tool_error("Not found", str(error))
    if isinstance(error, DuplicateReturnError):
        logger.info("%s failed - already returned: %s", operation, error)
        return _tool_error("Already returned", str(error))
    if isinstance(error, DuplicateError):
        logger.info("%s failed - duplicate id: %s", operation, error)
        return _tool_error("Duplicate", str(error))
    logger.warning("%s failed: %s", operation, error)
    return _tool_error("Operation failed", str(error))


# =============================================================================
# ISSUE TOOL
# =============================================================================


class IssueBookInput(BaseModel):
    """Input schema for the issue_book tool."""

    issued_id: str = Field(
        ...,
        description="New, unique identifier for the issue record",
        pattern=ID_PATTERN,
        examples=["IS155"],
    )

    member_id: str = Field(
        ...,
        description="ID of the member borrowing the book",
        pattern=ID_PATTERN,
        examples=["C108"],
    )

    isbn: str = Field(
        ...,
        description="ISBN of the book to issue",
        pattern=ISBN_PATTERN,
        examples=["978-0-553-29698-2"],
    )

    employee_id: str = Field(
        ...,
        description="ID of the employee processing the issue",
        pattern=ID_PATTERN,
        examples=["E104"],
    )


@trace_tool("issue_book")
async def issue_book_handler(
    issued_id: str, member_id: str, isbn: str, employee_id: str
) -> dict[str, Any]:
    """
    Handler for the issue_book tool.

    Returns an ``issued`` result with the new issue record, or an
    ``unavailable`` result if the book is already on loan.

    Raises:
        ToolError: For invalid input, unknown entities and reused ids
    """
    try:
        try:
            params = IssueBookInput(
                issued_id=issued_id, member_id=member_id, isbn=isbn, employee_id=employee_id
            )
        except ValidationError as e:
            logger.warning("Invalid issue parameters: %s", e)
            raise _tool_error("Invalid parameters", str(e)) from e

        _log_operation(
            "issue_book_start",
            issued_id=params.issued_id,
            member_id=params.member_id,
            isbn=params.isbn,
            employee_id=params.employee_id,
        )

        with session_scope() as session:
            try:
                repo = LendingRepository(session)
                result = repo.issue_book(
                    IssueRequestSchema(
                        issued_id=params.issued_id,
                        member_id=params.member_id,
                        isbn=params.isbn,
                        employee_id=params.employee_id,
                    )
                )
            except RepositoryException as e:
                raise _repository_error("Issue", e) from e

        _log_operation("issue_book_complete", issued_id=params.issued_id, status=result.status.value)

        return result.model_dump(mode="json", exclude_none=True)

    except ToolError:
        raise
    except Exception as e:
        logger.exception("Unexpected error in issue_book tool")
        raise _tool_error("Unexpected error", str(e)) from e


# =============================================================================
# RETURN TOOL
# =============================================================================


class ReturnBookInput(BaseModel):
    """Input schema for the return_book tool."""

    return_id: str = Field(
        ...,
        description="New, unique identifier for the return record",
        pattern=ID_PATTERN,
        examples=["RS138"],
    )

    issued_id: str = Field(
        ...,
        description="ID of the issue record being returned",
        pattern=ID_PATTERN,
        examples=["IS135"],
    )

    quality_note: str | None = Field(
        default=None,
        description="Optional note on the condition of the returned book",
        max_length=1000,
        examples=["Good", "Damaged"],
    )


@trace_tool("return_book")
async def return_book_handler(
    return_id: str, issued_id: str, quality_note: str | None = None
) -> dict[str, Any]:
    """Handler for the return_book tool."""
    try:
        try:
            params = ReturnBookInput(
                return_id=return_id, issued_id=issued_id, quality_note=quality_note
            )
        except ValidationError as e:
            logger.warning("Invalid return parameters: %s", e)
            raise _tool_error("Invalid parameters", str(e)) from e

        _log_operation(
            "return_book_start",
            return_id=params.return_id,
            issued_id=params.issued_id,
            has_note=bool(params.quality_note),
        )

        with session_scope() as session:
            try:
                repo = LendingRepository(session)
                result = repo.return_book(
                    ReturnRequestSchema(
                        return_id=params.return_id,
                        issued_id=params.issued_id,
                        quality_note=params.quality_note,
                    )
                )
            except RepositoryException as e:
                raise _repository_error("Return", e) from e

        _log_operation("return_book_complete", return_id=params.return_id, isbn=result.isbn)

        return result.model_dump(mode="json")

    except ToolError:
        raise
    except Exception as e:
        logger.exception("Unexpected error in return_book tool")
        raise _tool_error("Unexpected error", str(e)) from e


issue_book = {
    "name": "issue_book",
    "description": (
        "Issue a book to a member. If the book is on the shelf, records the loan under the "
        "given issue id and marks the book unavailable. If the book is already on loan, the "
        "request is declined with status 'unavailable' and nothing is recorded. The member, "
        "book and employee must exist."
    ),
    "handler": issue_book_handler,
}

return_book = {
    "name": "return_book",
    "description": (
        "Return an issued book. Records the return under the given return id, marks the "
        "book available again and replies with the book title. Each issue record can be "
        "returned only once."
    ),
    "handler": return_book_handler,
}

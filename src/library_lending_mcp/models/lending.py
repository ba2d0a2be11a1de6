"""
Lending models for the Library Lending MCP Server.

These models represent the lending ledger and the outcomes of its workflows:
- IssueRecord: a book handed to a member by an employee
- ReturnRecord: the member giving that book back
- IssueResult / ReturnResult: what the issue_book and return_book tools report

An issue record is "outstanding" until a return record references it. While a
book has an outstanding issue record its availability flag is false.
"""

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .book import ISBN_PATTERN
from .member import ID_PATTERN


class IssueStatus(str, Enum):
    """Outcome of an issue request."""

    ISSUED = "issued"
    UNAVAILABLE = "unavailable"


class IssueRecord(BaseModel):
    """
    Represents one loan event.

    Issue records are written once by the issue workflow and never updated.
    """

    issued_id: str = Field(
        ...,
        description="Unique identifier for the issue record",
        pattern=ID_PATTERN,
        examples=["IS106", "IS1"],
    )

    member_id: str = Field(
        ...,
        description="ID of the member who borrowed the book",
        pattern=ID_PATTERN,
        examples=["C106"],
    )

    book_isbn: str = Field(
        ...,
        description="ISBN of the issued book",
        pattern=ISBN_PATTERN,
        examples=["978-0-553-29698-2"],
    )

    book_title: str = Field(
        ...,
        description="Title of the book at the time it was issued",
        min_length=1,
        max_length=500,
    )

    employee_id: str = Field(
        ...,
        description="ID of the employee who processed the issue",
        pattern=ID_PATTERN,
        examples=["E104"],
    )

    issued_date: date = Field(
        default_factory=date.today,
        description="Date the book was issued",
    )

    created_at: datetime | None = Field(
        default=None,
        description="When this record was created",
    )

    @property
    def days_on_loan(self) -> int:
        """Days elapsed since the book was issued."""
        return (date.today() - self.issued_date).days

    model_config = ConfigDict(from_attributes=True, frozen=True)


class ReturnRecord(BaseModel):
    """
    Represents the return of an issued book.

    At most one return record exists per issue record.
    """

    return_id: str = Field(
        ...,
        description="Unique identifier for the return record",
        pattern=ID_PATTERN,
        examples=["RS104", "RS1"],
    )

    issued_id: str = Field(
        ...,
        description="ID of the issue record being closed",
        pattern=ID_PATTERN,
    )

    book_isbn: str = Field(
        ...,
        description="ISBN of the returned book",
        pattern=ISBN_PATTERN,
    )

    return_date: date = Field(
        default_factory=date.today,
        description="Date the book was returned",
    )

    quality_note: str | None = Field(
        None,
        description="Condition of the book as noted at the desk",
        max_length=1000,
        examples=["Good", "Damaged"],
    )

    created_at: datetime | None = Field(
        default=None,
        description="When this record was created",
    )

    model_config = ConfigDict(from_attributes=True, frozen=True)


class LoanEntry(BaseModel):
    """An issue record together with its return, if any."""

    issue: IssueRecord
    return_record: ReturnRecord | None = None

    @property
    def is_outstanding(self) -> bool:
        """True while the book has not been returned."""
        return self.return_record is None


class IssueResult(BaseModel):
    """Outcome of the issue workflow.

    ``status`` is ``unavailable`` when the book was already on loan; that is a
    normal declined outcome, not an error.
    """

    status: IssueStatus
    isbn: str
    message: str
    issue: IssueRecord | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == IssueStatus.ISSUED


class ReturnResult(BaseModel):
    """Outcome of the return workflow."""

    status: Literal["returned"] = "returned"
    return_id: str
    issued_id: str
    isbn: str
    book_title: str
    return_date: date
    message: str


class LendingStats(BaseModel):
    """Ledger counts for the stats resource."""

    total_issues: int
    total_returns: int
    outstanding_issues: int
    books_total: int
    books_available: int
    books_on_loan: int
    issues_today: int
    returns_today: int

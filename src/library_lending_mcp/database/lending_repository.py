"""
Lending repository implementation for the Library Lending MCP Server.

This repository owns the two workflows that change library state:

1. **Issue**: check the book is on the shelf, record the loan, mark it on loan
2. **Return**: record the return, mark the book available again

Both run as a single transaction. The availability check in the issue
workflow is a check-then-act sequence, so the flag is flipped with a
compare-and-swap ``UPDATE ... WHERE available`` under a row lock: when two
requests race for the same book only one update matches, and the other
request gets the declined outcome.

It also serves the read-only ledger views used by MCP resources
(outstanding loans, member history, stats, invariant audit).
"""

import logging
from datetime import date

from pydantic import BaseModel, Field
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..models.book import ISBN_PATTERN
from ..models.lending import IssueRecord as IssueModel
from ..models.lending import (
    IssueResult,
    IssueStatus,
    LendingStats,
    LoanEntry,
    ReturnResult,
)
from ..models.lending import ReturnRecord as ReturnModel
from ..models.member import ID_PATTERN
from .repository import (
    DuplicateError,
    DuplicateReturnError,
    NotFoundError,
    RepositoryException,
)
from .schema import Book as BookDB
from .schema import Employee as EmployeeDB
from .schema import IssueRecord as IssueDB
from .schema import Member as MemberDB
from .schema import ReturnRecord as ReturnDB
from .session import mcp_safe_commit, mcp_safe_query

logger = logging.getLogger(__name__)


class IssueRequestSchema(BaseModel):
    """Schema for issuing a book."""

    issued_id: str = Field(..., pattern=ID_PATTERN)
    member_id: str = Field(..., pattern=ID_PATTERN)
    isbn: str = Field(..., pattern=ISBN_PATTERN)
    employee_id: str = Field(..., pattern=ID_PATTERN)


class ReturnRequestSchema(BaseModel):
    """Schema for returning a book."""

    return_id: str = Field(..., pattern=ID_PATTERN)
    issued_id: str = Field(..., pattern=ID_PATTERN)
    quality_note: str | None = Field(None, max_length=1000)


class LendingRepository:
    """
    Repository for the lending ledger.

    Write methods commit on success. Rejected requests and failed writes roll
    back before raising, so the session never keeps the write lock and a
    failed workflow never leaves a ledger row without the matching flag change.
    """

    def __init__(self, session: Session):
        self.session = session

    # === Workflows ===

    def issue_book(self, request: IssueRequestSchema) -> IssueResult:
        """
        Issue a book to a member.

        1. Looks up the book (locked for update), member and employee
        2. If the book is on loan, returns the declined result; nothing changes
        3. Otherwise flips the flag and inserts the issue record, then commits

        Args:
            request: Issue request data

        Returns:
            IssueResult with status ``issued`` or ``unavailable``

        Raises:
            NotFoundError: If the book, member or employee does not exist
            DuplicateError: If the issue id is already in use
            RepositoryException: If the mutating step fails (rolled back)
        """
        book = mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB)
                .where(BookDB.isbn == request.isbn)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none(),
            "Failed to get book for issue",
        )

        if book is None:
            raise self._released(NotFoundError(f"Book {request.isbn} not found"))

        if self.session.get(MemberDB, request.member_id) is None:
            raise self._released(NotFoundError(f"Member {request.member_id} not found"))

        if self.session.get(EmployeeDB, request.employee_id) is None:
            raise self._released(NotFoundError(f"Employee {request.employee_id} not found"))

        if self.session.get(IssueDB, request.issued_id) is not None:
            raise self._released(
                DuplicateError(f"Issue record {request.issued_id} already exists")
            )

        if not book.available:
            return self._decline_issue(request)

        book_title = book.title

        try:
            if not self._set_availability(request.isbn, available=False):
                # Another transaction issued the book after our read
                return self._decline_issue(request)

            issue = IssueDB(
                issued_id=request.issued_id,
                member_id=request.member_id,
                book_isbn=request.isbn,
                book_title=book_title,
                employee_id=request.employee_id,
                issued_date=date.today(),
            )
            self.session.add(issue)
            self.session.flush()

            result = IssueResult(
                status=IssueStatus.ISSUED,
                isbn=request.isbn,
                message=f"Book records added successfully for book isbn: {request.isbn}",
                issue=self._issue_to_model(issue),
            )

        except Exception as e:
            self.session.rollback()
            logger.exception("Issue %s rolled back", request.issued_id)
            raise RepositoryException(f"Issue failed: {e!s}") from e

        mcp_safe_commit(self.session, "issue book")
        logger.info(
            "Issued %s (%s) to member %s as %s",
            request.isbn,
            book_title,
            request.member_id,
            request.issued_id,
        )
        return result

    def return_book(self, request: ReturnRequestSchema) -> ReturnResult:
        """
        Record the return of an issued book.

        1. Looks up the issue record and rejects unknown or already-returned ids
        2. Inserts the return record and marks the book available, then commits

        Args:
            request: Return request data

        Returns:
            ReturnResult with the returned book's title

        Raises:
            NotFoundError: If the issue record does not exist
            DuplicateReturnError: If the issue record was already returned
            DuplicateError: If the return id is already in use
            RepositoryException: If the mutating step fails (rolled back)
        """
        issue = mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(IssueDB)
                .where(IssueDB.issued_id == request.issued_id)
                .options(joinedload(IssueDB.return_record))
                .execution_options(populate_existing=True)
            )
            .unique()
            .scalar_one_or_none(),
            "Failed to get issue record for return",
        )

        if issue is None:
            raise self._released(NotFoundError(f"Issue record {request.issued_id} not found"))

        if issue.return_record is not None:
            raise self._released(
                DuplicateReturnError(
                    f"Issue record {request.issued_id} was already returned "
                    f"({issue.return_record.return_id})"
                )
            )

        if self.session.get(ReturnDB, request.return_id) is not None:
            raise self._released(
                DuplicateError(f"Return record {request.return_id} already exists")
            )

        book_isbn = issue.book_isbn
        book_title = issue.book_title
        return_date = date.today()

        try:
            return_record = ReturnDB(
                return_id=request.return_id,
                issued_id=request.issued_id,
                book_isbn=book_isbn,
                return_date=return_date,
                quality_note=request.quality_note,
            )
            self.session.add(return_record)
            self.session.flush()

            if not self._set_availability(book_isbn, available=True, compare=False):
                raise RepositoryException(f"Book {book_isbn} is missing from the catalog")

            result = ReturnResult(
                return_id=request.return_id,
                issued_id=request.issued_id,
                isbn=book_isbn,
                book_title=book_title,
                return_date=return_date,
                message=f"Thank you for returning the book: {book_title}",
            )

        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateReturnError(
                f"Issue record {request.issued_id} was already returned"
            ) from e
        except Exception as e:
            self.session.rollback()
            logger.exception("Return %s rolled back", request.return_id)
            raise RepositoryException(f"Return failed: {e!s}") from e

        mcp_safe_commit(self.session, "return book")
        logger.info("Returned %s (%s) for issue %s", book_isbn, book_title, request.issued_id)
        return result

    # === Ledger queries ===

    def get_issue(self, issued_id: str) -> IssueModel | None:
        issue = mcp_safe_query(
            self.session,
            lambda s: s.get(IssueDB, issued_id),
            f"Failed to get issue record {issued_id}",
        )
        return self._issue_to_model(issue) if issue else None

    def get_return(self, return_id: str) -> ReturnModel | None:
        return_record = mcp_safe_query(
            self.session,
            lambda s: s.get(ReturnDB, return_id),
            f"Failed to get return record {return_id}",
        )
        return self._return_to_model(return_record) if return_record else None

    def get_outstanding_issues(self, member_id: str | None = None) -> list[IssueModel]:
        """
        Get issue records that have no return yet, oldest first.

        Args:
            member_id: Restrict to one member's loans
        """
        query = (
            select(IssueDB)
            .outerjoin(ReturnDB, ReturnDB.issued_id == IssueDB.issued_id)
            .where(ReturnDB.return_id.is_(None))
            .order_by(IssueDB.issued_date, IssueDB.issued_id)
        )
        if member_id is not None:
            query = query.where(IssueDB.member_id == member_id)

        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get outstanding issues",
        )
        return [self._issue_to_model(issue) for issue in results]

    def get_member_history(self, member_id: str) -> list[LoanEntry]:
        """
        Get every loan for a member, newest first, with returns attached.

        Raises:
            NotFoundError: If the member does not exist
        """
        if self.session.get(MemberDB, member_id) is None:
            raise NotFoundError(f"Member {member_id} not found")

        query = (
            select(IssueDB)
            .where(IssueDB.member_id == member_id)
            .options(joinedload(IssueDB.return_record))
            .order_by(IssueDB.issued_date.desc(), IssueDB.issued_id.desc())
        )
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).unique().scalars().all(),
            "Failed to get member history",
        )
        return [
            LoanEntry(
                issue=self._issue_to_model(issue),
                return_record=(
                    self._return_to_model(issue.return_record) if issue.return_record else None
                ),
            )
            for issue in results
        ]

    def get_lending_stats(self) -> LendingStats:
        """Get ledger and catalog counts for reporting."""

        def count(query, error_msg: str) -> int:
            return mcp_safe_query(self.session, lambda s: s.execute(query).scalar(), error_msg) or 0

        today = date.today()
        total_issues = count(select(func.count()).select_from(IssueDB), "Failed to count issues")
        total_returns = count(select(func.count()).select_from(ReturnDB), "Failed to count returns")
        books_total = count(select(func.count()).select_from(BookDB), "Failed to count books")
        books_available = count(
            select(func.count()).select_from(BookDB).where(BookDB.available.is_(True)),
            "Failed to count available books",
        )
        issues_today = count(
            select(func.count()).select_from(IssueDB).where(IssueDB.issued_date == today),
            "Failed to count issues today",
        )
        returns_today = count(
            select(func.count()).select_from(ReturnDB).where(ReturnDB.return_date == today),
            "Failed to count returns today",
        )

        return LendingStats(
            total_issues=total_issues,
            total_returns=total_returns,
            outstanding_issues=total_issues - total_returns,
            books_total=books_total,
            books_available=books_available,
            books_on_loan=books_total - books_available,
            issues_today=issues_today,
            returns_today=returns_today,
        )

    def find_availability_mismatches(self) -> list[str]:
        """
        Audit the availability invariant.

        Returns:
            ISBNs whose flag disagrees with the ledger (on loan but flagged
            available, or on the shelf but flagged unavailable), sorted
        """
        on_loan = {issue.book_isbn for issue in self.get_outstanding_issues()}
        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(select(BookDB.isbn, BookDB.available)).all(),
            "Failed to read availability flags",
        )
        return sorted(isbn for isbn, available in rows if available == (isbn in on_loan))

    # === Helpers ===

    def _set_availability(self, isbn: str, available: bool, compare: bool = True) -> bool:
        """Set the availability flag.

        With ``compare`` the row only matches while it holds the opposite value.

        Returns:
            True if exactly one row matched
        """
        conditions = [BookDB.isbn == isbn]
        if compare:
            conditions.append(BookDB.available.is_(not available))
        statement = (
            update(BookDB)
            .where(*conditions)
            .values(available=available)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        return result.rowcount == 1

    def _released(self, error: RepositoryException) -> RepositoryException:
        """Roll back the lookups so a rejected request does not keep the write lock."""
        self.session.rollback()
        return error

    def _decline_issue(self, request: IssueRequestSchema) -> IssueResult:
        # Nothing was written; release the transaction
        self.session.rollback()
        logger.info("Issue %s declined - book %s is on loan", request.issued_id, request.isbn)
        return IssueResult(
            status=IssueStatus.UNAVAILABLE,
            isbn=request.isbn,
            message=(
                "Sorry to inform you the book you have requested is unavailable "
                f"book_isbn: {request.isbn}"
            ),
        )

    def _issue_to_model(self, issue: IssueDB) -> IssueModel:
        """Convert issue DB object to Pydantic model."""
        return IssueModel.model_validate(issue)

    def _return_to_model(self, return_record: ReturnDB) -> ReturnModel:
        """Convert return DB object to Pydantic model."""
        return ReturnModel.model_validate(return_record)

"""Tests for the lending workflows and ledger queries.

Covers:
1. Issue and return outcomes, including the declined issue
2. The availability invariant (flag false iff an outstanding issue exists)
3. Rollback when the mutating step fails
4. Concurrent issue attempts on one book
"""

import threading
from datetime import date

import pytest
from sqlalchemy import func, select

from library_lending_mcp.database.book_repository import BookCreateSchema, BookRepository
from library_lending_mcp.database.exceptions import (
    DatabaseOperationError,
    DuplicateError,
    DuplicateReturnError,
    NotFoundError,
    RepositoryException,
)
from library_lending_mcp.database.lending_repository import (
    IssueRequestSchema,
    LendingRepository,
    ReturnRequestSchema,
)
from library_lending_mcp.database.member_repository import (
    MemberCreateSchema,
    MemberRepository,
)
from library_lending_mcp.database.schema import Book as BookDB
from library_lending_mcp.database.schema import IssueRecord as IssueDB
from library_lending_mcp.database.schema import ReturnRecord as ReturnDB
from library_lending_mcp.database.session import DatabaseManager
from library_lending_mcp.database.staff_repository import (
    BranchCreateSchema,
    EmployeeCreateSchema,
    StaffRepository,
)
from library_lending_mcp.models.lending import IssueStatus


def _issue(issued_id, member_id, isbn, employee_id="E101"):
    return IssueRequestSchema(
        issued_id=issued_id, member_id=member_id, isbn=isbn, employee_id=employee_id
    )


def _return(return_id, issued_id, quality_note=None):
    return ReturnRequestSchema(return_id=return_id, issued_id=issued_id, quality_note=quality_note)


def _available(session, isbn) -> bool:
    return session.execute(select(BookDB.available).where(BookDB.isbn == isbn)).scalar_one()


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar()


def _write_with_short_timeout(db_manager):
    """Fails with "database is locked" if another session still holds the write lock."""
    other = DatabaseManager(db_manager.database_url, busy_timeout=0.1)
    try:
        with other.session_scope() as session:
            MemberRepository(session).create(MemberCreateSchema(member_id="C900", name="Late"))
    finally:
        other.close()


class TestLendingScenario:
    """The desk scenario: issue, declined second issue, return."""

    @pytest.fixture
    def desk(self, db_manager):
        with db_manager.session_scope() as session:
            staff = StaffRepository(session)
            staff.create_branch(BranchCreateSchema(branch_id="BR1", address="1 Library Way"))
            staff.create_employee(
                EmployeeCreateSchema(emp_id="E1", name="Desk Clerk", branch_id="BR1")
            )

            members = MemberRepository(session)
            members.create(MemberCreateSchema(member_id="M1", name="First Member"))
            members.create(MemberCreateSchema(member_id="M2", name="Second Member"))

            BookRepository(session).create(
                BookCreateSchema(
                    isbn="B1", title="Animal Farm", category="Dystopian", rental_price=5.5
                )
            )

    def test_issue_decline_return(self, db_manager, desk):
        with db_manager.session_scope() as session:
            result = LendingRepository(session).issue_book(_issue("IS1", "M1", "B1", "E1"))
            assert result.status == IssueStatus.ISSUED
            assert result.isbn == "B1"
            assert result.message == "Book records added successfully for book isbn: B1"
            assert _available(session, "B1") is False

        with db_manager.session_scope() as session:
            result = LendingRepository(session).issue_book(_issue("IS2", "M2", "B1", "E1"))
            assert result.status == IssueStatus.UNAVAILABLE
            assert not result.succeeded
            assert result.issue is None
            assert "unavailable" in result.message
            assert "B1" in result.message

        with db_manager.session_scope() as session:
            result = LendingRepository(session).return_book(_return("RS1", "IS1", "Good"))
            assert result.status == "returned"
            assert result.book_title == "Animal Farm"
            assert result.isbn == "B1"
            assert result.message == "Thank you for returning the book: Animal Farm"
            assert _available(session, "B1") is True

        with db_manager.session_scope() as session:
            assert _count(session, IssueDB) == 1
            assert _count(session, ReturnDB) == 1
            assert session.get(IssueDB, "IS2") is None
            assert LendingRepository(session).find_availability_mismatches() == []


class TestIssueBook:
    def test_issue_records_loan(self, test_db_session, library):
        repo = LendingRepository(test_db_session)

        result = repo.issue_book(_issue("IS101", library["member_id"], library["isbn"]))

        assert result.succeeded
        assert result.issue.issued_id == "IS101"
        assert result.issue.book_title == library["title"]
        assert result.issue.issued_date == date.today()
        assert result.issue.employee_id == library["employee_id"]

        stored = repo.get_issue("IS101")
        assert stored is not None
        assert stored.member_id == library["member_id"]
        assert _available(test_db_session, library["isbn"]) is False

    def test_declined_issue_creates_no_record(self, test_db_session, library):
        repo = LendingRepository(test_db_session)
        repo.issue_book(_issue("IS101", library["member_id"], library["isbn"]))

        result = repo.issue_book(_issue("IS102", library["other_member_id"], library["isbn"]))

        assert result.status == IssueStatus.UNAVAILABLE
        assert repo.get_issue("IS102") is None
        assert _count(test_db_session, IssueDB) == 1
        assert _available(test_db_session, library["isbn"]) is False

    def test_issue_unknown_book(self, test_db_session, library):
        with pytest.raises(NotFoundError, match="Book 999-missing not found"):
            LendingRepository(test_db_session).issue_book(
                _issue("IS101", library["member_id"], "999-missing")
            )

    def test_issue_unknown_member(self, test_db_session, library):
        with pytest.raises(NotFoundError, match="Member C999 not found"):
            LendingRepository(test_db_session).issue_book(_issue("IS101", "C999", library["isbn"]))

        assert _available(test_db_session, library["isbn"]) is True

    def test_issue_unknown_employee(self, test_db_session, library):
        with pytest.raises(NotFoundError, match="Employee E999 not found"):
            LendingRepository(test_db_session).issue_book(
                _issue("IS101", library["member_id"], library["isbn"], employee_id="E999")
            )

    def test_issue_reused_id(self, test_db_session, library):
        repo = LendingRepository(test_db_session)
        repo.issue_book(_issue("IS101", library["member_id"], library["isbn"]))

        with pytest.raises(DuplicateError, match="IS101"):
            repo.issue_book(_issue("IS101", library["member_id"], library["other_isbn"]))

        assert _available(test_db_session, library["other_isbn"]) is True

    def test_rejected_issue_releases_lock(self, db_manager, test_db_session, library):
        with pytest.raises(NotFoundError):
            LendingRepository(test_db_session).issue_book(
                _issue("IS101", "C999", library["isbn"])
            )

        assert not test_db_session.in_transaction()
        _write_with_short_timeout(db_manager)

    def test_issue_keeps_title_snapshot(self, test_db_session, library):
        repo = LendingRepository(test_db_session)
        repo.issue_book(_issue("IS101", library["member_id"], library["isbn"]))

        test_db_session.get(BookDB, library["isbn"]).title = "Renamed"
        test_db_session.commit()

        assert repo.get_issue("IS101").book_title == library["title"]

    def test_failed_issue_rolls_back(self, test_db_session, library, monkeypatch):
        def broken(self, issue):
            raise RuntimeError("disk full")

        monkeypatch.setattr(LendingRepository, "_issue_to_model", broken)
        repo = LendingRepository(test_db_session)

        with pytest.raises(RepositoryException, match="Issue failed: disk full"):
            repo.issue_book(_issue("IS101", library["member_id"], library["isbn"]))

        assert _available(test_db_session, library["isbn"]) is True
        assert _count(test_db_session, IssueDB) == 0


class TestReturnBook:
    @pytest.fixture
    def issued(self, db_manager, library):
        with db_manager.session_scope() as session:
            LendingRepository(session).issue_book(
                _issue("IS101", library["member_id"], library["isbn"])
            )
        return "IS101"

    def test_return_restores_availability(self, test_db_session, library, issued):
        repo = LendingRepository(test_db_session)

        result = repo.return_book(_return("RS101", issued, "Good"))

        assert result.return_id == "RS101"
        assert result.issued_id == issued
        assert result.return_date == date.today()
        assert _available(test_db_session, library["isbn"]) is True

        stored = repo.get_return("RS101")
        assert stored.quality_note == "Good"
        assert stored.book_isbn == library["isbn"]

    def test_returned_book_can_be_issued_again(self, test_db_session, library, issued):
        repo = LendingRepository(test_db_session)
        repo.return_book(_return("RS101", issued))

        result = repo.issue_book(_issue("IS102", library["other_member_id"], library["isbn"]))

        assert result.succeeded
        assert _available(test_db_session, library["isbn"]) is False

    def test_second_return_is_rejected(self, test_db_session, library, issued):
        repo = LendingRepository(test_db_session)
        repo.return_book(_return("RS101", issued))

        with pytest.raises(DuplicateReturnError, match="already returned"):
            repo.return_book(_return("RS102", issued))

        assert _count(test_db_session, ReturnDB) == 1
        assert _available(test_db_session, library["isbn"]) is True

    def test_duplicate_return_is_a_duplicate_error(self):
        assert issubclass(DuplicateReturnError, DuplicateError)

    def test_return_unknown_issue(self, test_db_session, library):
        with pytest.raises(NotFoundError, match="IS999"):
            LendingRepository(test_db_session).return_book(_return("RS101", "IS999"))

    def test_return_reused_return_id(self, test_db_session, library, issued):
        repo = LendingRepository(test_db_session)
        repo.return_book(_return("RS101", issued))
        repo.issue_book(_issue("IS102", library["member_id"], library["other_isbn"]))

        with pytest.raises(DuplicateError, match="RS101"):
            repo.return_book(_return("RS101", "IS102"))

        assert _available(test_db_session, library["other_isbn"]) is False

    def test_rejected_return_releases_lock(self, db_manager, test_db_session, library, issued):
        repo = LendingRepository(test_db_session)
        repo.return_book(_return("RS101", issued))

        with pytest.raises(DuplicateReturnError):
            repo.return_book(_return("RS102", issued))

        assert not test_db_session.in_transaction()
        _write_with_short_timeout(db_manager)

    def test_failed_return_rolls_back(self, test_db_session, library, issued, monkeypatch):
        monkeypatch.setattr(
            LendingRepository,
            "_set_availability",
            lambda self, isbn, available, compare=True: False,
        )
        repo = LendingRepository(test_db_session)

        with pytest.raises(RepositoryException, match="Return failed"):
            repo.return_book(_return("RS101", issued))

        assert repo.get_return("RS101") is None
        assert _available(test_db_session, library["isbn"]) is False
        assert [i.issued_id for i in repo.get_outstanding_issues()] == [issued]


class TestConcurrentIssue:
    def test_exactly_one_issue_succeeds(self, db_manager, library):
        barrier = threading.Barrier(2)
        outcomes: list[object] = []
        lock = threading.Lock()

        def attempt(issued_id, member_id):
            barrier.wait()
            try:
                with db_manager.session_scope() as session:
                    result = LendingRepository(session).issue_book(
                        _issue(issued_id, member_id, library["isbn"])
                    )
                    outcome = result.status
            except DatabaseOperationError as e:
                outcome = e
            with lock:
                outcomes.append(outcome)

        threads = [
            threading.Thread(target=attempt, args=("IS201", library["member_id"])),
            threading.Thread(target=attempt, args=("IS202", library["other_member_id"])),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(outcomes) == 2
        assert outcomes.count(IssueStatus.ISSUED) == 1
        loser = next(o for o in outcomes if o != IssueStatus.ISSUED)
        assert loser == IssueStatus.UNAVAILABLE or isinstance(loser, DatabaseOperationError)

        with db_manager.session_scope() as session:
            assert _count(session, IssueDB) == 1
            assert _available(session, library["isbn"]) is False
            assert LendingRepository(session).find_availability_mismatches() == []


class TestLedgerQueries:
    @pytest.fixture
    def history(self, db_manager, library):
        with db_manager.session_scope() as session:
            repo = LendingRepository(session)
            repo.issue_book(_issue("IS101", library["member_id"], library["isbn"]))
            repo.return_book(_return("RS101", "IS101", "Good"))
            repo.issue_book(_issue("IS102", library["member_id"], library["other_isbn"]))
            repo.issue_book(_issue("IS103", library["other_member_id"], library["isbn"]))

    def test_outstanding_issues(self, test_db_session, history, library):
        repo = LendingRepository(test_db_session)

        assert [i.issued_id for i in repo.get_outstanding_issues()] == ["IS102", "IS103"]
        assert [
            i.issued_id for i in repo.get_outstanding_issues(member_id=library["member_id"])
        ] == ["IS102"]

    def test_member_history_newest_first(self, test_db_session, history, library):
        entries = LendingRepository(test_db_session).get_member_history(library["member_id"])

        assert [e.issue.issued_id for e in entries] == ["IS102", "IS101"]
        assert entries[0].is_outstanding
        assert entries[1].return_record.return_id == "RS101"
        assert not entries[1].is_outstanding

    def test_member_history_unknown_member(self, test_db_session, library):
        with pytest.raises(NotFoundError):
            LendingRepository(test_db_session).get_member_history("C999")

    def test_lending_stats(self, test_db_session, history):
        stats = LendingRepository(test_db_session).get_lending_stats()

        assert stats.total_issues == 3
        assert stats.total_returns == 1
        assert stats.outstanding_issues == 2
        assert stats.books_total == 2
        assert stats.books_available == 0
        assert stats.books_on_loan == 2
        assert stats.issues_today == 3
        assert stats.returns_today == 1

    def test_mismatch_audit(self, test_db_session, history, library):
        repo = LendingRepository(test_db_session)
        assert repo.find_availability_mismatches() == []

        test_db_session.get(BookDB, library["other_isbn"]).available = True
        test_db_session.commit()

        assert repo.find_availability_mismatches() == [library["other_isbn"]]

"""
SQLAlchemy database schema for the Library Lending MCP Server.

Six tables back the lending service:

1. branches / employees - library staff, read-only to the workflows
2. members - registered borrowers, read-only to the workflows
3. books - the catalog; only the ``available`` flag is touched by lending
4. issued_status - one row per loan event, immutable once written
5. return_status - at most one row per issue record

Invariant kept by the lending workflows: a book's ``available`` flag is false
exactly when it has an issue record with no matching return record.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

# Base class for all SQLAlchemy models
Base = declarative_base()


class Branch(Base):
    """
    Branches table - physical library locations.

    MCP Usage:
    - Referenced by employees; not exposed directly as a resource
    """

    __tablename__ = "branches"

    branch_id = Column(String(50), primary_key=True)
    # Plain column: the manager is an employee, and employees reference branches
    manager_id = Column(String(50), nullable=True)
    address = Column(String(500), nullable=False)
    contact_no = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    employees = relationship("Employee", back_populates="branch")


class Employee(Base):
    """
    Employees table - staff who process issues.

    MCP Usage:
    - Tools: issue_book records the employee handling the loan
    """

    __tablename__ = "employees"

    emp_id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False)
    position = Column(String(100), nullable=True)
    salary = Column(Float, nullable=True)
    branch_id = Column(String(50), ForeignKey("branches.branch_id"), nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())

    branch = relationship("Branch", back_populates="employees")
    issues = relationship("IssueRecord", back_populates="employee")

    __table_args__ = (
        Index("idx_employee_branch", "branch_id"),
        CheckConstraint("salary IS NULL OR salary >= 0", name="check_salary_non_negative"),
    )


class Member(Base):
    """
    Members table - registered borrowers.

    MCP Usage:
    - Resource: library://members/{member_id}/loans
    - Tools: issue_book records the borrowing member
    """

    __tablename__ = "members"

    member_id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    address = Column(String(500), nullable=True)
    registration_date = Column(Date, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())

    issues = relationship("IssueRecord", back_populates="member")


class Book(Base):
    """
    Books table - the library's catalog.

    MCP Usage:
    - Resource: library://books/list, library://books/{isbn}
    - Tools: issue_book and return_book flip ``available``
    """

    __tablename__ = "books"

    isbn = Column(String(20), primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    rental_price = Column(Float, nullable=False, default=0.0)
    available = Column(Boolean, nullable=False, default=True)
    author = Column(String(200), nullable=True)
    publisher = Column(String(200), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    issues = relationship("IssueRecord", back_populates="book")

    __table_args__ = (
        Index("idx_book_category", "category"),
        Index("idx_book_availability", "available"),
        CheckConstraint("rental_price >= 0", name="check_rental_price_non_negative"),
    )


class IssueRecord(Base):
    """
    Issue records table - one row per loan event.

    MCP Usage:
    - Resource: library://loans/outstanding
    - Tools: issue_book creates these records; they are never updated
    """

    __tablename__ = "issued_status"

    issued_id = Column(String(50), primary_key=True)
    member_id = Column(String(50), ForeignKey("members.member_id"), nullable=False)
    book_isbn = Column(String(20), ForeignKey("books.isbn"), nullable=False)
    book_title = Column(String(500), nullable=False)
    employee_id = Column(String(50), ForeignKey("employees.emp_id"), nullable=False)
    issued_date = Column(Date, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())

    member = relationship("Member", back_populates="issues")
    book = relationship("Book", back_populates="issues")
    employee = relationship("Employee", back_populates="issues")
    return_record = relationship("ReturnRecord", back_populates="issue", uselist=False)

    __table_args__ = (
        Index("idx_issue_member", "member_id"),
        Index("idx_issue_book", "book_isbn"),
        Index("idx_issue_date", "issued_date"),
    )

    @validates("book_isbn", "member_id", "employee_id")
    def validate_reference(self, key, value):
        """Reject blank references before they reach the database."""
        if not value or not str(value).strip():
            raise ValueError(f"{key} must not be blank")
        return value


class ReturnRecord(Base):
    """
    Return records table - closes an issue record.

    MCP Usage:
    - Tools: return_book creates these records
    - Auditing: immutable, one per issue record
    """

    __tablename__ = "return_status"

    return_id = Column(String(50), primary_key=True)
    issued_id = Column(String(50), ForeignKey("issued_status.issued_id"), nullable=False)
    book_isbn = Column(String(20), nullable=False)
    return_date = Column(Date, nullable=False)
    quality_note = Column(Text, nullable=True)

    # No updated_at: returns are immutable
    created_at = Column(DateTime, nullable=False, default=func.now())

    issue = relationship("IssueRecord", back_populates="return_record")

    __table_args__ = (
        UniqueConstraint("issued_id", name="unique_return_per_issue"),
        Index("idx_return_date", "return_date"),
    )

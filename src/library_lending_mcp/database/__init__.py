"""
Database package for the Library Lending MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories for the catalog, members, staff and the lending ledger
- Sample data generation (seed.py)
"""

from .book_repository import BookRepository
from .exceptions import (
    DatabaseOperationError,
    DuplicateError,
    DuplicateReturnError,
    NotFoundError,
    RepositoryException,
)
from .lending_repository import IssueRequestSchema, LendingRepository, ReturnRequestSchema
from .member_repository import MemberRepository
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import (
    Base,
    Book,
    Branch,
    Employee,
    IssueRecord,
    Member,
    ReturnRecord,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    mcp_safe_commit,
    mcp_safe_query,
    reset_db_manager,
    session_scope,
)
from .staff_repository import StaffRepository

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookRepository",
    "Branch",
    "DatabaseManager",
    "DatabaseOperationError",
    "DuplicateError",
    "DuplicateReturnError",
    "Employee",
    "IssueRecord",
    "IssueRequestSchema",
    "LendingRepository",
    "Member",
    "MemberRepository",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "ReturnRecord",
    "ReturnRequestSchema",
    "StaffRepository",
    "get_db_manager",
    "mcp_safe_commit",
    "mcp_safe_query",
    "reset_db_manager",
    "session_scope",
]

"""
Library Lending MCP Server Models.

Pydantic v2 models for all entities the server exposes:
- Book: catalog items, the only entity the workflows mutate
- Member: registered borrowers
- Branch / Employee: library staff
- Lending: issue and return records plus workflow results
"""

from .book import Book
from .lending import (
    IssueRecord,
    IssueResult,
    IssueStatus,
    LendingStats,
    LoanEntry,
    ReturnRecord,
    ReturnResult,
)
from .member import Member
from .staff import Branch, Employee

__all__ = [
    "Book",
    "Branch",
    "Employee",
    "IssueRecord",
    "IssueResult",
    "IssueStatus",
    "LendingStats",
    "LoanEntry",
    "Member",
    "ReturnRecord",
    "ReturnResult",
]

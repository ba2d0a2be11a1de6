"""Library Lending MCP Resources Package

Resources are the read-only endpoints of the server: the catalog and views
over the lending ledger. Changes go through the tools package instead.
"""

from .books import book_resources
from .loans import loan_resources

all_resources = book_resources + loan_resources

__all__ = [
    "all_resources",
    "book_resources",
    "loan_resources",
]

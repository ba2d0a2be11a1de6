"""Book Resources - Catalog Access

Exposes catalog data via read-only resources. Clients use these to browse
books and check whether a book is on the shelf before issuing it.

Resources:
- library://books/list - First page of the catalog, sorted by title
- library://books/{isbn} - Individual book details by ISBN
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError
from pydantic import BaseModel, Field

from ..config import get_config
from ..database.book_repository import BookRepository, BookSearchParams, BookSortOptions
from ..database.repository import PaginationParams
from ..database.session import session_scope
from ..models.book import Book
from ..observability import trace_resource

logger = logging.getLogger(__name__)


class BookListResponse(BaseModel):
    """Response schema with books and pagination metadata."""

    books: list[Book] = Field(..., description="List of books in this page")
    total: int = Field(..., description="Total number of books in the catalog")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there's a next page")
    has_previous: bool = Field(..., description="Whether there's a previous page")


@trace_resource("books.list")
async def list_books_handler() -> dict[str, Any]:
    """Returns the first page of the catalog."""
    try:
        page_size = get_config().default_page_size
        logger.debug("MCP Resource Request - books/list: page_size=%d", page_size)

        with session_scope() as session:
            result = BookRepository(session).search(
                search_params=BookSearchParams(),
                pagination=PaginationParams(page=1, page_size=page_size),
                sort_by=BookSortOptions.TITLE,
            )

            response = BookListResponse(
                books=result.items,
                total=result.total,
                page=result.page,
                page_size=result.page_size,
                total_pages=result.total_pages,
                has_next=result.has_next,
                has_previous=result.has_previous,
            )
            return response.model_dump(mode="json")

    except Exception as e:
        logger.exception("Error in books/list resource")
        raise ResourceError(f"Failed to retrieve book list: {e!s}") from e


@trace_resource("books.detail")
async def get_book_handler(isbn: str) -> dict[str, Any]:
    """Returns details for a specific book, including its availability."""
    try:
        logger.debug("MCP Resource Request - books/%s", isbn)

        with session_scope() as session:
            book = BookRepository(session).get_by_isbn(isbn)

            if book is None:
                raise ResourceError(f"Book not found: {isbn}")

            return book.model_dump(mode="json")

    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in books/{isbn} resource")
        raise ResourceError(f"Failed to retrieve book details: {e!s}") from e


book_resources: list[dict[str, Any]] = [
    {
        "uri": "library://books/list",
        "name": "Book Catalog",
        "description": (
            "Browse the library's catalog sorted by title. Each entry shows the rental "
            "price and whether the book is currently available."
        ),
        "mime_type": "application/json",
        "handler": list_books_handler,
    },
    {
        "uri_template": "library://books/{isbn}",
        "name": "Book Details",
        "description": "Get details and availability for a specific book by ISBN",
        "mime_type": "application/json",
        "handler": get_book_handler,
    },
]

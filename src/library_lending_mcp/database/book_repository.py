"""
Book repository implementation for the Library Lending MCP Server.

Catalog data access for MCP resources:

1. **Lookup**: Single books by ISBN (library://books/{isbn})
2. **Search**: Title/author text search, category and availability filters
3. **Maintenance**: Create, update and delete catalog entries

The availability flag is deliberately absent from the create and update
schemas. New books enter the catalog available, and only the lending
workflows in ``lending_repository`` change the flag afterwards.
"""

import enum

from pydantic import BaseModel, Field
from sqlalchemy import and_, func, or_, select

from ..models.book import ISBN_PATTERN
from ..models.book import Book as BookModel
from .repository import (
    BaseRepository,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
)
from .schema import Book as BookDB
from .schema import IssueRecord as IssueDB
from .session import mcp_safe_query


class BookCreateSchema(BaseModel):
    """Schema for adding a book to the catalog."""

    isbn: str = Field(..., pattern=ISBN_PATTERN)
    title: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    rental_price: float = Field(default=0.0, ge=0.0)
    author: str | None = Field(None, max_length=200)
    publisher: str | None = Field(None, max_length=200)


class BookUpdateSchema(BaseModel):
    """Schema for updating a book - all fields optional."""

    title: str | None = Field(None, min_length=1, max_length=500)
    category: str | None = Field(None, min_length=1, max_length=100)
    rental_price: float | None = Field(None, ge=0.0)
    author: str | None = None
    publisher: str | None = None


class BookSearchParams(BaseModel):
    """Search parameters for finding books."""

    query: str | None = None  # Title, author or ISBN contains
    category: str | None = None  # Exact category match
    available_only: bool = False


class BookSortOptions(str, enum.Enum):
    """Sorting options for book queries."""

    TITLE = "title"
    AUTHOR = "author"
    CATEGORY = "category"
    RENTAL_PRICE = "rental_price"
    CREATED_AT = "created_at"


class BookRepository(BaseRepository[BookDB, BookCreateSchema, BookUpdateSchema, BookModel]):
    """
    Repository for catalog data access.

    All methods return Pydantic models for clean JSON serialization.
    """

    @property
    def model_class(self):
        return BookDB

    @property
    def key_name(self) -> str:
        return "isbn"

    @property
    def response_schema(self):
        return BookModel

    def get_by_isbn(self, isbn: str) -> BookModel | None:
        """Get book by ISBN, or None if the catalog has no such book."""
        return self.get_by_id(isbn)

    def search(
        self,
        search_params: BookSearchParams,
        pagination: PaginationParams | None = None,
        sort_by: BookSortOptions = BookSortOptions.TITLE,
        sort_desc: bool = False,
    ) -> PaginatedResponse[BookModel]:
        """
        Search for books with various filters.

        Args:
            search_params: Search and filter criteria
            pagination: Pagination parameters
            sort_by: Field to sort by
            sort_desc: Sort in descending order

        Returns:
            Paginated response with matching books
        """
        filters = []

        if search_params.query:
            search_term = f"%{search_params.query}%"
            filters.append(
                or_(
                    BookDB.title.ilike(search_term),
                    BookDB.author.ilike(search_term),
                    BookDB.isbn.like(search_term),
                )
            )

        if search_params.category:
            filters.append(BookDB.category == search_params.category)

        if search_params.available_only:
            filters.append(BookDB.available.is_(True))

        query = select(BookDB)
        count_query = select(func.count()).select_from(BookDB)
        if filters:
            query = query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        sort_field = {
            BookSortOptions.TITLE: BookDB.title,
            BookSortOptions.AUTHOR: BookDB.author,
            BookSortOptions.CATEGORY: BookDB.category,
            BookSortOptions.RENTAL_PRICE: BookDB.rental_price,
            BookSortOptions.CREATED_AT: BookDB.created_at,
        }.get(sort_by, BookDB.title)
        query = query.order_by(sort_field.desc() if sort_desc else sort_field.asc(), BookDB.isbn)

        if not pagination:
            pagination = PaginationParams()
        pagination.validate_params()

        total = (
            mcp_safe_query(
                self.session, lambda s: s.execute(count_query).scalar(), "Failed to count books"
            )
            or 0
        )

        query = query.offset(pagination.offset).limit(pagination.page_size)
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to search books",
        )

        items = [self._to_response_model(book) for book in results]
        return PaginatedResponse.build(items, total, pagination)

    def get_categories(self) -> list[str]:
        """Get the distinct catalog categories, sorted."""
        query = select(BookDB.category).distinct().order_by(BookDB.category)
        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get categories"
        )
        return list(results)

    def delete(self, key: str) -> bool:
        """
        Delete a book from the catalog.

        Raises:
            RepositoryException: If the book appears in the lending ledger
        """
        issue_count = mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count()).select_from(IssueDB).where(IssueDB.book_isbn == key)
            ).scalar(),
            "Failed to count issue records for book",
        )
        if issue_count:
            raise RepositoryException(
                f"Cannot delete book {key} - it has {issue_count} issue record(s)"
            )
        return super().delete(key)

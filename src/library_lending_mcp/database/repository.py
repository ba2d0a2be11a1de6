"""
Repository pattern implementation for the Library Lending MCP Server.

Repositories keep data access out of the MCP handlers:

1. **Protocol Separation**: Tools and resources deal with MCP payloads only
2. **Testability**: Repositories run against any SQLAlchemy session
3. **Consistency**: Every query goes through mcp_safe_query / mcp_safe_commit
4. **MCP Compatibility**: Methods return Pydantic models that serialize
   cleanly to JSON

The base repository covers keyed CRUD for the catalog, member and staff
tables. The lending workflows live in ``lending_repository``.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import (
    DatabaseOperationError,
    DuplicateError,
    DuplicateReturnError,
    NotFoundError,
    RepositoryException,
)
from .schema import Base
from .session import mcp_safe_commit, mcp_safe_query

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class PaginationParams(BaseModel):
    """Standard pagination parameters for MCP list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValueError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValueError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for MCP list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(
        cls, items: list[Any], total: int, pagination: PaginationParams
    ) -> "PaginatedResponse":
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )


class BaseRepository(
    ABC, Generic[ModelType, CreateSchemaType, UpdateSchemaType, ResponseSchemaType]
):
    """
    Abstract base repository providing keyed CRUD operations.

    Subclasses name the SQLAlchemy model, its primary-key column and the
    Pydantic response schema. Keys are caller-supplied strings.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def key_name(self) -> str:
        """Return the name of the primary-key attribute."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    @property
    def key_column(self):
        return getattr(self.model_class, self.key_name)

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db_obj(self, key: str) -> ModelType | None:
        query = select(self.model_class).where(self.key_column == key)
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.model_class.__name__} {key}",
        )

    def get_by_id(self, key: str) -> ResponseSchemaType | None:
        """
        Get entity by key.

        Returns:
            Pydantic model or None if not found
        """
        db_obj = self._get_db_obj(key)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def get_all(
        self,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> list[ResponseSchemaType] | PaginatedResponse[ResponseSchemaType]:
        """
        Get all entities with optional pagination and sorting.

        Returns:
            List of entities, or a paginated response when pagination is given
        """
        query = select(self.model_class)

        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))
        else:
            query = query.order_by(asc(self.key_column))

        if pagination:
            pagination.validate_params()

            count_query = select(func.count()).select_from(self.model_class)
            total = (
                mcp_safe_query(
                    self.session,
                    lambda s: s.execute(count_query).scalar(),
                    "Failed to get total count",
                )
                or 0
            )

            query = query.offset(pagination.offset).limit(pagination.page_size)
            results = mcp_safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to get paginated results",
            )

            items = [self._to_response_model(item) for item in results]
            return PaginatedResponse.build(items, total, pagination)

        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get all results"
        )
        return [self._to_response_model(item) for item in results]

    def create(self, data: CreateSchemaType) -> ResponseSchemaType:
        """
        Create new entity.

        Raises:
            DuplicateError: If the key is already in use
            RepositoryException: On other database errors
        """
        values = data.model_dump()
        key = values[self.key_name]
        if self.exists(key):
            raise DuplicateError(f"{self.model_class.__name__} {key} already exists")

        try:
            db_obj = self.model_class(**values)
            self.session.add(db_obj)
            self.session.flush()
            response = self._to_response_model(db_obj)
        except IntegrityError as e:
            self.session.rollback()
            raise RepositoryException(
                f"{self.model_class.__name__} {key} violates a constraint: {e.orig}"
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Database error: {e!s}") from e

        mcp_safe_commit(self.session, f"create {self.model_class.__name__}")
        return response

    def update(self, key: str, data: UpdateSchemaType) -> ResponseSchemaType | None:
        """
        Update existing entity with the fields set on ``data``.

        Returns:
            Updated entity or None if not found
        """
        db_obj = self._get_db_obj(key)
        if db_obj is None:
            return None

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(db_obj, field, value)

        try:
            self.session.flush()
            response = self._to_response_model(db_obj)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Update failed: {e!s}") from e

        mcp_safe_commit(self.session, f"update {self.model_class.__name__}")
        return response

    def delete(self, key: str) -> bool:
        """
        Delete entity by key.

        Returns:
            True if deleted, False if not found
        """
        db_obj = self._get_db_obj(key)
        if db_obj is None:
            return False

        try:
            self.session.delete(db_obj)
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Delete failed: {e!s}") from e

        mcp_safe_commit(self.session, f"delete {self.model_class.__name__}")
        return True

    def exists(self, key: str) -> bool:
        """Check if an entity with this key exists."""
        query = select(func.count()).select_from(self.model_class).where(self.key_column == key)
        count = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return count > 0


__all__ = [
    "BaseRepository",
    "DatabaseOperationError",
    "DuplicateError",
    "DuplicateReturnError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
]

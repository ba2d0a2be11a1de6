"""
Book model for the Library Lending MCP Server.

Books are exposed as resources (library://books/list, library://books/{isbn})
and are the only entity the lending workflows mutate: issuing a book clears
``available``, returning it sets the flag again.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

ISBN_PATTERN = r"^[A-Za-z0-9-]{1,20}$"


class Book(BaseModel):
    """
    Represents a book in the library catalog.
    """

    isbn: str = Field(
        ...,
        description="Book identifier (ISBN or catalog key)",
        pattern=ISBN_PATTERN,
        examples=["978-0-553-29698-2", "B1"],
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=500,
        examples=["The Catcher in the Rye", "Animal Farm"],
    )

    category: str = Field(
        ...,
        description="Catalog category used for shelving and reports",
        min_length=1,
        max_length=100,
        examples=["Classic", "Dystopian", "History"],
    )

    rental_price: float = Field(
        default=0.0,
        description="Price charged per loan",
        ge=0.0,
        examples=[6.0, 7.5],
    )

    available: bool = Field(
        default=True,
        description="False while the book is out on loan",
    )

    author: str | None = Field(
        None,
        description="Author name as printed on the book",
        max_length=200,
        examples=["J.D. Salinger"],
    )

    publisher: str | None = Field(
        None,
        description="Publisher name",
        max_length=200,
        examples=["Little, Brown and Company"],
    )

    created_at: datetime | None = Field(
        default=None,
        description="Timestamp when the book was added to the catalog",
    )

    updated_at: datetime | None = Field(
        default=None,
        description="Timestamp when the book record was last updated",
    )

    @field_validator("title", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank values."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Value cannot be blank")
        return stripped

    @property
    def status_label(self) -> str:
        """Availability as the yes/no label shown to library staff."""
        return "yes" if self.available else "no"

    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        json_schema_extra={
            "example": {
                "isbn": "978-0-553-29698-2",
                "title": "The Catcher in the Rye",
                "category": "Classic",
                "rental_price": 7.0,
                "available": True,
                "author": "J.D. Salinger",
                "publisher": "Little, Brown and Company",
            }
        },
    )

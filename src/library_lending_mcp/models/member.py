"""
Member model for the Library Lending MCP Server.

Members borrow books. The lending workflows only read them, to confirm the
borrower exists before an issue record is written.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

ID_PATTERN = r"^[A-Za-z0-9_-]{1,50}$"


class Member(BaseModel):
    """
    Represents a registered library member.
    """

    member_id: str = Field(
        ...,
        description="Unique identifier for the member",
        pattern=ID_PATTERN,
        examples=["C101", "M1"],
    )

    name: str = Field(
        ...,
        description="Member's full name",
        min_length=1,
        max_length=200,
        examples=["Alice Johnson"],
    )

    address: str | None = Field(
        None,
        description="Postal address",
        max_length=500,
        examples=["123 Main St"],
    )

    registration_date: date = Field(
        default_factory=date.today,
        description="Date the member registered with the library",
    )

    created_at: datetime | None = Field(
        default=None,
        description="When this record was created",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be blank")
        return stripped

    @field_validator("registration_date")
    @classmethod
    def validate_registration_date(cls, v: date) -> date:
        """Registration cannot be in the future."""
        if v > date.today():
            raise ValueError("Registration date cannot be in the future")
        return v

    @property
    def membership_days(self) -> int:
        """Days since the member registered."""
        return (date.today() - self.registration_date).days

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

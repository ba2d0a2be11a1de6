"""Branch and employee models for the Library Lending MCP Server."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .member import ID_PATTERN


class Branch(BaseModel):
    """A library branch."""

    branch_id: str = Field(..., pattern=ID_PATTERN, examples=["B001"])
    manager_id: str | None = Field(None, pattern=ID_PATTERN, examples=["E109"])
    address: str = Field(..., min_length=1, max_length=500, examples=["123 Main St"])
    contact_no: str | None = Field(None, max_length=20, examples=["+919099988676"])
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class Employee(BaseModel):
    """A staff member who processes issues at a branch."""

    emp_id: str = Field(..., pattern=ID_PATTERN, examples=["E101"])
    name: str = Field(..., min_length=1, max_length=200, examples=["John Doe"])
    position: str | None = Field(None, max_length=100, examples=["Clerk", "Manager"])
    salary: float | None = Field(None, ge=0.0, examples=[60000.0])
    branch_id: str = Field(..., pattern=ID_PATTERN, examples=["B001"])
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

"""
Member repository implementation for the Library Lending MCP Server.

Members are read-only to the lending workflows; this repository covers
registration and lookup.
"""

from datetime import date

from pydantic import BaseModel, Field
from sqlalchemy import func, select

from ..models.member import ID_PATTERN
from ..models.member import Member as MemberModel
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import Member as MemberDB
from .session import mcp_safe_query


class MemberCreateSchema(BaseModel):
    """Schema for registering a member."""

    member_id: str = Field(..., pattern=ID_PATTERN)
    name: str = Field(..., min_length=1, max_length=200)
    address: str | None = Field(None, max_length=500)
    registration_date: date = Field(default_factory=date.today)


class MemberUpdateSchema(BaseModel):
    """Schema for updating a member - all fields optional."""

    name: str | None = Field(None, min_length=1, max_length=200)
    address: str | None = Field(None, max_length=500)


class MemberRepository(
    BaseRepository[MemberDB, MemberCreateSchema, MemberUpdateSchema, MemberModel]
):
    """Repository for member data access."""

    @property
    def model_class(self):
        return MemberDB

    @property
    def key_name(self) -> str:
        return "member_id"

    @property
    def response_schema(self):
        return MemberModel

    def search_by_name(
        self, name: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[MemberModel]:
        """Find members whose name contains ``name`` (case-insensitive)."""
        if not pagination:
            pagination = PaginationParams()
        pagination.validate_params()

        condition = MemberDB.name.ilike(f"%{name}%")
        total = (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count()).select_from(MemberDB).where(condition)
                ).scalar(),
                "Failed to count members",
            )
            or 0
        )

        query = (
            select(MemberDB)
            .where(condition)
            .order_by(MemberDB.name, MemberDB.member_id)
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to search members"
        )
        return PaginatedResponse.build(
            [self._to_response_model(m) for m in results], total, pagination
        )

"""
Staff repository implementation for the Library Lending MCP Server.

Branches and employees share one repository: an employee always belongs to a
branch, and the lending workflows only need to confirm an employee exists.
"""

from pydantic import BaseModel, Field
from sqlalchemy import select

from ..models.member import ID_PATTERN
from ..models.staff import Branch as BranchModel
from ..models.staff import Employee as EmployeeModel
from .repository import BaseRepository, DuplicateError, NotFoundError
from .schema import Branch as BranchDB
from .schema import Employee as EmployeeDB
from .session import mcp_safe_commit, mcp_safe_query


class BranchCreateSchema(BaseModel):
    """Schema for creating a branch."""

    branch_id: str = Field(..., pattern=ID_PATTERN)
    manager_id: str | None = Field(None, pattern=ID_PATTERN)
    address: str = Field(..., min_length=1, max_length=500)
    contact_no: str | None = Field(None, max_length=20)


class EmployeeCreateSchema(BaseModel):
    """Schema for hiring an employee into a branch."""

    emp_id: str = Field(..., pattern=ID_PATTERN)
    name: str = Field(..., min_length=1, max_length=200)
    position: str | None = Field(None, max_length=100)
    salary: float | None = Field(None, ge=0.0)
    branch_id: str = Field(..., pattern=ID_PATTERN)


class StaffRepository(
    BaseRepository[EmployeeDB, EmployeeCreateSchema, EmployeeCreateSchema, EmployeeModel]
):
    """Repository for employees, with branch management alongside."""

    @property
    def model_class(self):
        return EmployeeDB

    @property
    def key_name(self) -> str:
        return "emp_id"

    @property
    def response_schema(self):
        return EmployeeModel

    def create_branch(self, data: BranchCreateSchema) -> BranchModel:
        """
        Create a branch.

        Raises:
            DuplicateError: If the branch id is already in use
        """
        if self.session.get(BranchDB, data.branch_id) is not None:
            raise DuplicateError(f"Branch {data.branch_id} already exists")

        branch = BranchDB(**data.model_dump())
        self.session.add(branch)
        self.session.flush()
        response = BranchModel.model_validate(branch)
        mcp_safe_commit(self.session, "create branch")
        return response

    def get_branch(self, branch_id: str) -> BranchModel | None:
        branch = mcp_safe_query(
            self.session,
            lambda s: s.get(BranchDB, branch_id),
            f"Failed to get branch {branch_id}",
        )
        return BranchModel.model_validate(branch) if branch else None

    def create_employee(self, data: EmployeeCreateSchema) -> EmployeeModel:
        """
        Hire an employee into an existing branch.

        Raises:
            NotFoundError: If the branch does not exist
            DuplicateError: If the employee id is already in use
        """
        if self.get_branch(data.branch_id) is None:
            raise NotFoundError(f"Branch {data.branch_id} not found")
        return self.create(data)

    def get_employee(self, emp_id: str) -> EmployeeModel | None:
        return self.get_by_id(emp_id)

    def list_employees(self, branch_id: str | None = None) -> list[EmployeeModel]:
        """List employees, optionally restricted to one branch."""
        query = select(EmployeeDB).order_by(EmployeeDB.emp_id)
        if branch_id is not None:
            query = query.where(EmployeeDB.branch_id == branch_id)

        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to list employees"
        )
        return [self._to_response_model(e) for e in results]

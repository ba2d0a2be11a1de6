"""Test configuration and fixtures for the Library Lending MCP Server.

1. Isolated test databases - every test gets its own SQLite file
2. Configuration overrides - LIBRARY_LENDING_* variables point at the test file
3. Sample library - a branch, staff, members and books in a known state

SQLite transactions start with BEGIN IMMEDIATE, so a session that has read
anything holds the write lock until it commits or rolls back. Tests open
short-lived sessions through ``db_manager.session_scope()`` and never keep
one open while a tool or resource handler runs.
"""

import os
from collections.abc import Generator
from datetime import date
from pathlib import Path

import logfire
import pytest
from sqlalchemy.orm import Session

from library_lending_mcp.config import ServerConfig, reset_config
from library_lending_mcp.database import session as session_module
from library_lending_mcp.database.book_repository import BookCreateSchema, BookRepository
from library_lending_mcp.database.member_repository import (
    MemberCreateSchema,
    MemberRepository,
)
from library_lending_mcp.database.session import DatabaseManager
from library_lending_mcp.database.staff_repository import (
    BranchCreateSchema,
    EmployeeCreateSchema,
    StaffRepository,
)

CATCHER_ISBN = "978-0-553-29698-2"
ANIMAL_FARM_ISBN = "978-0-330-25864-8"


@pytest.fixture(scope="session", autouse=True)
def quiet_logfire():
    """Keep spans local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


# === Configuration Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture(autouse=True)
def test_config(test_db_path: Path, monkeypatch) -> Generator[ServerConfig, None, None]:
    """Point the global configuration at the per-test database file."""
    for key in list(os.environ):
        if key.startswith("LIBRARY_LENDING_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("LIBRARY_LENDING_DATABASE_PATH", str(test_db_path))
    monkeypatch.setenv("LIBRARY_LENDING_SERVER_NAME", "test-library-lending")

    reset_config()
    yield ServerConfig()
    reset_config()


# === Database Fixtures ===


@pytest.fixture
def db_manager(test_database_url: str, monkeypatch) -> Generator[DatabaseManager, None, None]:
    """A database manager for the test file, installed as the global manager.

    Tool and resource handlers call ``session_scope()``, which goes through
    the global manager, so they see the same database as the test.
    """
    manager = DatabaseManager(test_database_url, busy_timeout=5.0)
    manager.init_database()
    monkeypatch.setattr(session_module, "_db_manager", manager)

    yield manager

    manager.close()


@pytest.fixture
def test_db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """A single session for repository tests that run without handlers."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# === Sample Library ===


@pytest.fixture
def library(db_manager: DatabaseManager) -> dict[str, str]:
    """
    Create a small library and return the ids used by tests.

    - Branch B001 with employee E101
    - Members C101 and C102
    - Two available books
    """
    with db_manager.session_scope() as session:
        staff = StaffRepository(session)
        staff.create_branch(
            BranchCreateSchema(
                branch_id="B001",
                manager_id="E101",
                address="123 Main St",
                contact_no="+919099988676",
            )
        )
        staff.create_employee(
            EmployeeCreateSchema(
                emp_id="E101", name="John Doe", position="Clerk", salary=60000.0, branch_id="B001"
            )
        )

        members = MemberRepository(session)
        members.create(
            MemberCreateSchema(
                member_id="C101",
                name="Alice Johnson",
                address="123 Main St",
                registration_date=date(2021, 5, 15),
            )
        )
        members.create(
            MemberCreateSchema(
                member_id="C102",
                name="Bob Smith",
                address="456 Elm St",
                registration_date=date(2021, 6, 20),
            )
        )

        books = BookRepository(session)
        books.create(
            BookCreateSchema(
                isbn=CATCHER_ISBN,
                title="The Catcher in the Rye",
                category="Classic",
                rental_price=7.0,
                author="J.D. Salinger",
                publisher="Little, Brown and Company",
            )
        )
        books.create(
            BookCreateSchema(
                isbn=ANIMAL_FARM_ISBN,
                title="Animal Farm",
                category="Classic",
                rental_price=5.5,
                author="George Orwell",
                publisher="Penguin Books",
            )
        )

    return {
        "branch_id": "B001",
        "employee_id": "E101",
        "member_id": "C101",
        "other_member_id": "C102",
        "isbn": CATCHER_ISBN,
        "title": "The Catcher in the Rye",
        "other_isbn": ANIMAL_FARM_ISBN,
    }

"""
Library Lending MCP Server Package.

An MCP (Model Context Protocol) server for a library's lending desk: books
are issued to members and returned, with the availability of every book kept
in step with the issue and return ledger.

Key Components:
- models: Pydantic models for data validation and serialization
- database: SQLAlchemy schema, session management and repositories
- config: Configuration management with pydantic-settings
- resources: MCP resources (read-only endpoints)
- tools: MCP tools (issue and return)
- observability: Logfire tracing for tools and resources
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]

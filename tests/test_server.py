"""Tests for server wiring: registration, the MCP call path and startup helpers."""

import json

from fastmcp import Client

from library_lending_mcp import server
from library_lending_mcp.database import DatabaseManager


async def test_tools_registered_with_named_parameters():
    async with Client(server.mcp) as client:
        tools = {tool.name: tool for tool in await client.list_tools()}

    assert {"issue_book", "return_book"} <= set(tools)

    issue_schema = tools["issue_book"].inputSchema
    assert set(issue_schema["properties"]) == {"issued_id", "member_id", "isbn", "employee_id"}
    assert set(issue_schema["required"]) == {"issued_id", "member_id", "isbn", "employee_id"}

    return_schema = tools["return_book"].inputSchema
    assert set(return_schema["properties"]) == {"return_id", "issued_id", "quality_note"}
    assert set(return_schema["required"]) == {"return_id", "issued_id"}


async def test_resources_registered():
    async with Client(server.mcp) as client:
        resources = {str(r.uri) for r in await client.list_resources()}
        templates = {t.uriTemplate for t in await client.list_resource_templates()}

    assert {
        "library://books/list",
        "library://loans/outstanding",
        "library://loans/stats",
    } <= resources
    assert {"library://books/{isbn}", "library://members/{member_id}/loans"} <= templates


async def test_issue_and_return_through_client(db_manager: DatabaseManager, library):
    issue_args = {
        "issued_id": "IS155",
        "member_id": library["member_id"],
        "isbn": library["isbn"],
        "employee_id": library["employee_id"],
    }

    async with Client(server.mcp) as client:
        issued = await client.call_tool("issue_book", issue_args, raise_on_error=False)
        declined = await client.call_tool(
            "issue_book",
            {**issue_args, "issued_id": "IS156", "member_id": library["other_member_id"]},
            raise_on_error=False,
        )
        returned = await client.call_tool(
            "return_book",
            {"return_id": "RS155", "issued_id": "IS155", "quality_note": "Good"},
            raise_on_error=False,
        )

    assert not issued.is_error
    assert json.loads(issued.content[0].text)["status"] == "issued"

    assert not declined.is_error
    assert json.loads(declined.content[0].text)["status"] == "unavailable"

    assert not returned.is_error
    payload = json.loads(returned.content[0].text)
    assert payload["status"] == "returned"
    assert payload["book_title"] == library["title"]


async def test_tool_failures_are_error_results(db_manager: DatabaseManager, library):
    async with Client(server.mcp) as client:
        missing = await client.call_tool(
            "return_book", {"return_id": "RS155", "issued_id": "IS999"}, raise_on_error=False
        )
        invalid = await client.call_tool(
            "issue_book",
            {
                "issued_id": "bad id!",
                "member_id": library["member_id"],
                "isbn": library["isbn"],
                "employee_id": library["employee_id"],
            },
            raise_on_error=False,
        )

    assert missing.is_error
    assert "Not found: Issue record IS999 not found" in missing.content[0].text

    assert invalid.is_error
    assert "Invalid parameters" in invalid.content[0].text


def test_prepare_database_creates_schema(db_manager: DatabaseManager):
    db_manager.init_database(drop_existing=True)

    server.prepare_database()

    assert db_manager.verify_connection() is True

"""
MCP tools for the Library Lending Server.

Tools are the actions with side effects. Each tool is a dictionary with a
name, description, JSON input schema and async handler, registered by the
server at startup.
"""

from .lending import issue_book, return_book

all_tools = [
    issue_book,
    return_book,
]

__all__ = [
    "all_tools",
    "issue_book",
    "return_book",
]

"""Decorators for tracing MCP components."""

import functools
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire


def trace_tool(tool_name: str):
    """Decorator to trace MCP tool execution."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"tool.execution.{tool_name}",
                tool_name=tool_name,
                tool_category=_categorize_tool(tool_name),
            ) as span:
                start_time = datetime.now()

                _add_attributes(span, "input", kwargs)

                try:
                    result = await func(*args, **kwargs)

                    span.set_attribute("tool.success", True)
                    span.set_attribute(
                        "tool.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                    )
                    _add_tool_result_metrics(span, result)

                    return result

                except Exception as e:
                    span.set_attribute("tool.success", False)
                    span.set_attribute("tool.error", str(e))
                    raise

        return wrapper

    return decorator


def trace_resource(resource_type: str):
    """Lightweight decorator for resource reads."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"resource.read.{resource_type}",
                resource_type=resource_type,
            ) as span:
                _add_attributes(span, "param", kwargs)

                result = await func(*args, **kwargs)

                for key in ("books", "loans", "issues"):
                    if isinstance(result.get(key), list):
                        span.set_attribute("result.item_count", len(result[key]))
                        break

                return result

        return wrapper

    return decorator


def _categorize_tool(tool_name: str) -> str:
    if "issue" in tool_name or "return" in tool_name:
        return "lending"
    return "general"


def _add_attributes(span, prefix: str, data: dict):
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)


def _add_tool_result_metrics(span, result: dict[str, Any]):
    """Record the workflow outcome (issued, unavailable, returned)."""
    status = result.get("status")
    if status:
        span.set_attribute("result.status", status)

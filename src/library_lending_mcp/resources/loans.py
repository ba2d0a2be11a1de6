"""Loan Resources - Lending Ledger Views

Read-only views over the issue and return records.

Resources:
- library://loans/outstanding - Books currently on loan, oldest first
- library://loans/stats - Ledger counts and an availability audit
- library://members/{member_id}/loans - One member's lending history
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..database.lending_repository import LendingRepository
from ..database.repository import NotFoundError
from ..database.session import session_scope
from ..observability import trace_resource

logger = logging.getLogger(__name__)


@trace_resource("loans.outstanding")
async def outstanding_loans_handler() -> dict[str, Any]:
    """Returns every issue record without a return."""
    try:
        with session_scope() as session:
            issues = LendingRepository(session).get_outstanding_issues()

            return {
                "issues": [
                    {**issue.model_dump(mode="json"), "days_on_loan": issue.days_on_loan}
                    for issue in issues
                ],
                "total": len(issues),
            }

    except Exception as e:
        logger.exception("Error in loans/outstanding resource")
        raise ResourceError(f"Failed to retrieve outstanding loans: {e!s}") from e


@trace_resource("loans.stats")
async def lending_stats_handler() -> dict[str, Any]:
    """
    Returns ledger and catalog counts.

    ``availability_mismatches`` lists books whose availability flag
    disagrees with the ledger; it is empty in a healthy database.
    """
    try:
        with session_scope() as session:
            repo = LendingRepository(session)
            stats = repo.get_lending_stats()
            mismatches = repo.find_availability_mismatches()

            if mismatches:
                logger.warning("Availability flag out of step for %d book(s)", len(mismatches))

            return {
                **stats.model_dump(mode="json"),
                "availability_mismatches": mismatches,
            }

    except Exception as e:
        logger.exception("Error in loans/stats resource")
        raise ResourceError(f"Failed to calculate lending stats: {e!s}") from e


@trace_resource("members.loans")
async def member_loans_handler(member_id: str) -> dict[str, Any]:
    """Returns a member's loans, newest first, with any return attached."""
    try:
        with session_scope() as session:
            history = LendingRepository(session).get_member_history(member_id)

            loans = [
                {
                    **entry.model_dump(mode="json"),
                    "is_outstanding": entry.is_outstanding,
                }
                for entry in history
            ]
            return {
                "member_id": member_id,
                "loans": loans,
                "total": len(loans),
                "outstanding": sum(1 for loan in loans if loan["is_outstanding"]),
            }

    except NotFoundError as e:
        raise ResourceError(f"Member not found: {member_id}") from e
    except Exception as e:
        logger.exception("Error in members/{member_id}/loans resource")
        raise ResourceError(f"Failed to retrieve member loans: {e!s}") from e


loan_resources: list[dict[str, Any]] = [
    {
        "uri": "library://loans/outstanding",
        "name": "Outstanding Loans",
        "description": "Books currently issued and not yet returned, oldest loan first",
        "mime_type": "application/json",
        "handler": outstanding_loans_handler,
    },
    {
        "uri": "library://loans/stats",
        "name": "Lending Statistics",
        "description": (
            "Counts of issues, returns and books on loan, plus any books whose "
            "availability flag disagrees with the ledger"
        ),
        "mime_type": "application/json",
        "handler": lending_stats_handler,
    },
    {
        "uri_template": "library://members/{member_id}/loans",
        "name": "Member Loan History",
        "description": "All loans for one member, newest first, with return details",
        "mime_type": "application/json",
        "handler": member_loans_handler,
    },
]

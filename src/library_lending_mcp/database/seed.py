"""
Sample data generation for the Library Lending MCP Server.

Generates a small, realistic library so the MCP resources and tools have
something to work with:
- A handful of branches, each with a manager and clerks
- Members registered over the last few years
- A catalog of books across several categories
- Lending history: returned loans in the past plus some books still on loan

Historical ledger rows are written directly with past dates. The availability
flag of every book is derived from the generated ledger, so a freshly seeded
database has no availability mismatches.
"""

import logging
import random
from datetime import date, timedelta

from faker import Faker

from .schema import Book, Branch, Employee, IssueRecord, Member, ReturnRecord
from .session import DatabaseManager

logger = logging.getLogger(__name__)

CATEGORIES = [
    "Classic",
    "Fiction",
    "Fantasy",
    "Mystery",
    "History",
    "Science",
    "Dystopian",
    "Children",
    "Horror",
    "Literary Fiction",
]

POSITIONS = ["Clerk", "Librarian", "Assistant", "Clerk"]

QUALITY_NOTES = ["Good", "Good", "Good", "Worn cover", "Damaged"]


class ProgressReporter:
    """Reports progress during data generation."""

    def __init__(self, total_steps: int) -> None:
        self.total_steps = total_steps
        self.current_step = 0

    def update(self, task: str, increment: int = 1) -> None:
        self.current_step += increment
        percentage = (self.current_step / self.total_steps) * 100
        logger.info("[%5.1f%%] %s", percentage, task)


def generate_isbn13(rng: random.Random) -> str:
    """Generate a valid ISBN-13 in 978-X-XXXX-XXXX-X form."""
    group = str(rng.randint(0, 9))
    publisher = str(rng.randint(1000, 9999))
    title = str(rng.randint(1000, 9999))

    digits = f"978{group}{publisher}{title}"
    total = sum(int(digit) * (3 if i % 2 else 1) for i, digit in enumerate(digits))
    check_digit = (10 - (total % 10)) % 10

    return f"978-{group}-{publisher}-{title}-{check_digit}"


def generate_branches(fake: Faker, num_branches: int = 3) -> list[Branch]:
    return [
        Branch(
            branch_id=f"B{i + 1:03d}",
            manager_id=f"E{(i + 1) * 100 + 1}",
            address=fake.street_address(),
            contact_no=fake.numerify("+91##########"),
        )
        for i in range(num_branches)
    ]


def generate_employees(
    fake: Faker, rng: random.Random, branches: list[Branch], staff_per_branch: int = 4
) -> list[Employee]:
    """
    Generate employees for each branch.

    The first employee of every branch is the manager named on the branch row.
    """
    employees = []
    for i, branch in enumerate(branches):
        for j in range(staff_per_branch):
            is_manager = j == 0
            employees.append(
                Employee(
                    emp_id=f"E{(i + 1) * 100 + j + 1}",
                    name=fake.name(),
                    position="Manager" if is_manager else rng.choice(POSITIONS),
                    salary=float(rng.randrange(40000, 90000 if is_manager else 65000, 500)),
                    branch_id=branch.branch_id,
                )
            )
    return employees


def generate_members(fake: Faker, num_members: int = 40) -> list[Member]:
    return [
        Member(
            member_id=f"C{i + 101}",
            name=fake.name(),
            address=fake.street_address(),
            registration_date=fake.date_between(start_date="-3y", end_date="-30d"),
        )
        for i in range(num_members)
    ]


def generate_books(fake: Faker, rng: random.Random, num_books: int = 60) -> list[Book]:
    books = []
    seen: set[str] = set()
    while len(books) < num_books:
        isbn = generate_isbn13(rng)
        if isbn in seen:
            continue
        seen.add(isbn)

        books.append(
            Book(
                isbn=isbn,
                title=fake.catch_phrase().title(),
                category=rng.choice(CATEGORIES),
                rental_price=round(rng.uniform(2.0, 9.0), 2),
                available=True,
                author=fake.name(),
                publisher=fake.company(),
            )
        )
    return books


def generate_lending_history(
    fake: Faker,
    rng: random.Random,
    books: list[Book],
    members: list[Member],
    employees: list[Employee],
    outstanding_ratio: float = 0.25,
) -> tuple[list[IssueRecord], list[ReturnRecord]]:
    """
    Generate issue and return records for the catalog.

    Each book gets zero to three past loans that were returned, one after the
    other. A share of books (``outstanding_ratio``) also gets a current loan
    with no return; those books are marked unavailable.
    """
    issues: list[IssueRecord] = []
    returns: list[ReturnRecord] = []
    today = date.today()

    for book in books:
        cursor = fake.date_between(start_date="-2y", end_date="-1y")

        for _ in range(rng.randint(0, 3)):
            issued_date = cursor
            return_date = issued_date + timedelta(days=rng.randint(3, 30))
            if return_date >= today - timedelta(days=30):
                break

            issue = _make_issue(len(issues), book, rng.choice(members), rng.choice(employees))
            issue.issued_date = issued_date
            issues.append(issue)
            returns.append(
                ReturnRecord(
                    return_id=f"RS{len(returns) + 101}",
                    issued_id=issue.issued_id,
                    book_isbn=book.isbn,
                    return_date=return_date,
                    quality_note=rng.choice(QUALITY_NOTES),
                )
            )
            cursor = return_date + timedelta(days=rng.randint(1, 60))

        if rng.random() < outstanding_ratio:
            issue = _make_issue(len(issues), book, rng.choice(members), rng.choice(employees))
            issue.issued_date = fake.date_between(start_date="-21d", end_date="today")
            issues.append(issue)
            book.available = False

    return issues, returns


def _make_issue(index: int, book: Book, member: Member, employee: Employee) -> IssueRecord:
    return IssueRecord(
        issued_id=f"IS{index + 101}",
        member_id=member.member_id,
        book_isbn=book.isbn,
        book_title=book.title,
        employee_id=employee.emp_id,
    )


def seed_database(
    database_url: str,
    num_books: int = 60,
    num_members: int = 40,
    seed: int = 42,
) -> dict[str, int]:
    """
    Recreate the schema and fill it with generated data.

    Args:
        database_url: Target database; existing tables are dropped
        num_books: Catalog size
        num_members: Number of registered members
        seed: Seed for Faker and the random generator, for repeatable data

    Returns:
        Row counts per table
    """
    fake = Faker()
    fake.seed_instance(seed)
    rng = random.Random(seed)

    progress = ProgressReporter(total_steps=6)
    manager = DatabaseManager(database_url)
    manager.init_database(drop_existing=True)
    progress.update("Database tables created")

    try:
        with manager.session_scope() as session:
            branches = generate_branches(fake)
            session.add_all(branches)
            session.flush()
            progress.update(f"Generated {len(branches)} branches")

            employees = generate_employees(fake, rng, branches)
            session.add_all(employees)
            session.flush()
            progress.update(f"Generated {len(employees)} employees")

            members = generate_members(fake, num_members)
            session.add_all(members)
            session.flush()
            progress.update(f"Generated {len(members)} members")

            books = generate_books(fake, rng, num_books)
            issues, returns = generate_lending_history(fake, rng, books, members, employees)
            session.add_all(books)
            session.flush()
            progress.update(f"Generated {len(books)} books")

            session.add_all(issues)
            session.flush()
            session.add_all(returns)
            progress.update(f"Generated {len(issues)} issue and {len(returns)} return records")

        counts = {
            "branches": len(branches),
            "employees": len(employees),
            "members": len(members),
            "books": len(books),
            "issued_status": len(issues),
            "return_status": len(returns),
            "on_loan": sum(1 for b in books if not b.available),
        }
        logger.info("Seeding complete: %s", counts)
        return counts
    finally:
        manager.close()

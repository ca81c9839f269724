# tests/conftest.py
"""
Pytest configuration and fixtures for the support bot test suite.

Provides:
- factories for transient User/Ticket objects (rule tests never touch the DB)
- an in-memory aiosqlite session for the service layer
- i18n loaded from the real locale files
"""

from datetime import datetime, timedelta
from itertools import count

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from models import Ticket, TicketPriority, TicketStatus, User, UserRole
from utils.i18n import setup_i18n

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)

_ids = count(1000)


def make_user(role=UserRole.USER, user_id=None, name=None, email=None, **kwargs) -> User:
    """Transient user; role may be any value, including unknown ones."""
    user_id = user_id if user_id is not None else next(_ids)
    return User(
        id=user_id,
        telegram_id=kwargs.pop("telegram_id", None),
        name=name if name is not None else f"user{user_id}",
        email=email,
        role=role,
        language=kwargs.pop("language", "en"),
        is_active=kwargs.pop("is_active", True),
        **kwargs
    )


def make_ticket(owner=None, assignee=None, status=TicketStatus.OPEN, priority=TicketPriority.MEDIUM,
                subject="Printer is broken", description="It prints blank pages", created_at=None,
                ticket_id=None, **kwargs) -> Ticket:
    """Transient ticket wired to its owner and assignee objects."""
    owner = owner if owner is not None else make_user()
    ticket = Ticket(
        id=ticket_id if ticket_id is not None else next(_ids),
        owner_id=owner.id,
        assignee_id=assignee.id if assignee is not None else None,
        subject=subject,
        description=description,
        status=status,
        priority=priority,
        created_at=created_at or BASE_TIME,
        **kwargs
    )
    ticket.owner = owner
    if assignee is not None:
        ticket.assignee = assignee
    return ticket


@pytest.fixture
def owner():
    return make_user(UserRole.USER, name="Alice", email="alice@example.com")


@pytest.fixture
def other_user():
    return make_user(UserRole.USER, name="Bob")


@pytest.fixture
def agent():
    return make_user(UserRole.AGENT, name="Agent Smith")


@pytest.fixture
def other_agent():
    return make_user(UserRole.AGENT, name="Agent Jones")


@pytest.fixture
def admin():
    return make_user(UserRole.ADMIN, name="Root")


@pytest.fixture
def unknown():
    return make_user("ROLE_GUEST", name="Ghost")


@pytest.fixture(autouse=True)
def i18n():
    """Locale files from the project, English by default."""
    return setup_i18n(default_language="en")


@pytest_asyncio.fixture
async def session():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db_session:
        yield db_session

    await engine.dispose()


@pytest_asyncio.fixture
async def people(session):
    """Persisted users: one of each role plus a second agent and a second user."""
    users = {
        "owner": User(telegram_id=1, name="Alice", email="alice@example.com", role=UserRole.USER),
        "stranger": User(telegram_id=2, name="Bob", role=UserRole.USER),
        "agent": User(telegram_id=3, name="Agent Smith", role=UserRole.AGENT),
        "other_agent": User(telegram_id=4, name="Agent Jones", role=UserRole.AGENT),
        "admin": User(telegram_id=5, name="Root", role=UserRole.ADMIN),
    }
    session.add_all(users.values())
    await session.commit()
    return users


def hours_later(hours: float) -> datetime:
    return BASE_TIME + timedelta(hours=hours)

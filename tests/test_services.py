"""
Tests for the persistence services against an in-memory SQLite database.

Every gated workflow re-reads the ticket, re-checks the rule and only then writes.
"""

import pytest
import pytest_asyncio
from sqlalchemy import update

from models import Ticket, TicketPriority, TicketStatus, UserRole
from rules.decisions import DenialReason
from services.tickets import (
    add_attachment, add_comment, assign_ticket, create_ticket, fetch_ticket, fetch_tickets,
    rate_ticket, transition_ticket, update_ticket,
)
from handlers.agent import QUEUE_CRITERIA
from rules.query import filter_and_sort
from services.users import (
    fetch_users, get_or_create_user, get_user_by_telegram_id, set_language, set_user_active, set_user_role,
)


@pytest_asyncio.fixture
async def ticket(session, people):
    return await create_ticket(session, people["owner"], "Cannot log in", "Password reset does not work")


class TestUsers:
    """Registration and role management."""

    @pytest.mark.asyncio
    async def test_get_or_create_registers_once(self, session):
        user, created = await get_or_create_user(session, telegram_id=100, name="Carol")
        again, created_again = await get_or_create_user(session, telegram_id=100, name="Carol")

        assert created is True
        assert created_again is False
        assert again.id == user.id
        assert user.role == UserRole.USER
        assert user.language == "en"

    @pytest.mark.asyncio
    async def test_configured_admin_ids_get_admin_role(self, session):
        user, _created = await get_or_create_user(session, telegram_id=777, admin_ids=[777])
        assert user.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_lookup_and_language(self, session, people):
        user = await get_user_by_telegram_id(session, 1)
        assert user.name == "Alice"

        await set_language(session, user, "ru")
        assert (await get_user_by_telegram_id(session, 1)).language == "ru"
        assert await get_user_by_telegram_id(session, 999) is None

    @pytest.mark.asyncio
    async def test_fetch_users_by_role(self, session, people):
        agents = await fetch_users(session, role=UserRole.AGENT)
        assert {agent.name for agent in agents} == {"Agent Smith", "Agent Jones"}
        assert len(await fetch_users(session)) == 5

    @pytest.mark.asyncio
    async def test_admin_changes_role(self, session, people):
        decision, user = await set_user_role(session, people["admin"], people["stranger"].id, "ROLE_AGENT")
        assert decision
        assert user.role == UserRole.AGENT

    @pytest.mark.asyncio
    async def test_agent_cannot_change_roles(self, session, people):
        decision, user = await set_user_role(session, people["agent"], people["stranger"].id, "admin")
        assert decision.reason == DenialReason.INSUFFICIENT_ROLE
        assert user.role == UserRole.USER

    @pytest.mark.asyncio
    async def test_missing_user(self, session, people):
        decision, user = await set_user_role(session, people["admin"], 12345, "agent")
        assert decision.reason == DenialReason.USER_NOT_FOUND
        assert user is None

    @pytest.mark.asyncio
    async def test_demoted_agent_releases_open_tickets(self, session, people, ticket):
        agent = people["agent"]
        await assign_ticket(session, agent, ticket.id, agent.id)

        closed = await create_ticket(session, people["owner"], "Old", "Done long ago")
        await assign_ticket(session, people["admin"], closed.id, agent.id)
        await session.execute(update(Ticket).where(Ticket.id == closed.id).values(status=TicketStatus.CLOSED))
        await session.commit()

        decision, _user = await set_user_role(session, people["admin"], agent.id, UserRole.USER)

        assert decision
        assert (await fetch_ticket(session, ticket.id)).assignee_id is None
        # Закрытые тикеты сохраняют исполнителя
        assert (await fetch_ticket(session, closed.id)).assignee_id == agent.id

    @pytest.mark.asyncio
    async def test_released_in_progress_ticket_shows_up_in_agent_queue(self, session, people, ticket):
        agent = people["agent"]
        await assign_ticket(session, agent, ticket.id, agent.id)
        await transition_ticket(session, agent, ticket.id, TicketStatus.IN_PROGRESS)

        await set_user_role(session, people["admin"], agent.id, UserRole.USER)

        queue = filter_and_sort(
            await fetch_tickets(session, unassigned=True, exclude_closed=True), QUEUE_CRITERIA
        ).to_list()
        assert [(t.id, t.status) for t in queue] == [(ticket.id, TicketStatus.IN_PROGRESS)]

        # Другой агент может подхватить тикет из очереди
        decision, taken = await assign_ticket(session, people["other_agent"], ticket.id, people["other_agent"].id)
        assert decision
        assert taken.status == TicketStatus.IN_PROGRESS


class TestUserActivation:
    """Blocking and unblocking users."""

    @pytest.mark.asyncio
    async def test_block_releases_assigned_tickets(self, session, people, ticket):
        agent = people["agent"]
        await assign_ticket(session, agent, ticket.id, agent.id)
        await transition_ticket(session, agent, ticket.id, TicketStatus.IN_PROGRESS)

        decision, user, released = await set_user_active(session, people["admin"], agent.id, False)

        assert decision
        assert user.is_active is False
        assert [t.id for t in released] == [ticket.id]
        fresh = await fetch_ticket(session, ticket.id)
        assert fresh.assignee_id is None
        assert fresh.status == TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_blocked_user_keeps_own_tickets(self, session, people, ticket):
        decision, user, released = await set_user_active(session, people["admin"], people["owner"].id, False)

        assert decision
        assert released == []
        assert (await fetch_ticket(session, ticket.id)).owner_id == user.id

    @pytest.mark.asyncio
    async def test_unblock(self, session, people):
        stranger = people["stranger"]
        await set_user_active(session, people["admin"], stranger.id, False)

        decision, user, released = await set_user_active(session, people["admin"], stranger.id, True)

        assert decision
        assert released == []
        assert (await get_user_by_telegram_id(session, 2)).is_active is True

    @pytest.mark.asyncio
    async def test_only_admin_blocks_and_not_themselves(self, session, people):
        decision, user, _released = await set_user_active(session, people["agent"], people["stranger"].id, False)
        assert decision.reason == DenialReason.INSUFFICIENT_ROLE
        assert user.is_active is True

        decision, _user, _released = await set_user_active(session, people["admin"], people["admin"].id, False)
        assert decision.reason == DenialReason.SELF_DEACTIVATION

        decision, user, _released = await set_user_active(session, people["admin"], 4040, False)
        assert decision.reason == DenialReason.USER_NOT_FOUND
        assert user is None


class TestTicketQueries:
    """Tests for create_ticket and fetch_tickets."""

    @pytest.mark.asyncio
    async def test_created_ticket_is_open_and_loaded(self, session, people, ticket):
        assert ticket.status == TicketStatus.OPEN
        assert ticket.priority == TicketPriority.MEDIUM
        assert ticket.owner.name == "Alice"
        assert ticket.assignee is None
        assert ticket.comments == []
        assert ticket.created_at is not None

    @pytest.mark.asyncio
    async def test_fetch_tickets_filters(self, session, people, ticket):
        other = await create_ticket(session, people["stranger"], "Other", "Text", priority=TicketPriority.HIGH)
        await assign_ticket(session, people["agent"], other.id, people["agent"].id)

        assert [t.id for t in await fetch_tickets(session)] == [ticket.id, other.id]
        assert [t.id for t in await fetch_tickets(session, owner_id=people["owner"].id)] == [ticket.id]
        assert [t.id for t in await fetch_tickets(session, assignee_id=people["agent"].id)] == [other.id]
        assert [t.id for t in await fetch_tickets(session, unassigned=True)] == [ticket.id]
        assert await fetch_tickets(session, status=TicketStatus.CLOSED) == []

    @pytest.mark.asyncio
    async def test_fetch_tickets_can_skip_closed(self, session, people, ticket):
        closed = await create_ticket(session, people["owner"], "Old", "Done")
        await transition_ticket(session, people["admin"], closed.id, TicketStatus.CLOSED)

        assert [t.id for t in await fetch_tickets(session, exclude_closed=True)] == [ticket.id]
        assert len(await fetch_tickets(session)) == 2

    @pytest.mark.asyncio
    async def test_fetch_missing_ticket(self, session):
        assert await fetch_ticket(session, 404) is None


class TestWorkflows:
    """Gated workflows: transition, assignment, comments, attachments, rating, edits."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, session, people, ticket):
        owner, agent = people["owner"], people["agent"]

        decision, _ticket = await transition_ticket(session, agent, ticket.id, TicketStatus.IN_PROGRESS)
        assert decision.reason == DenialReason.NOT_ASSIGNEE

        decision, assigned = await assign_ticket(session, agent, ticket.id, agent.id)
        assert decision
        assert assigned.assignee.name == "Agent Smith"

        decision, _ticket = await transition_ticket(session, agent, ticket.id, TicketStatus.IN_PROGRESS)
        assert decision
        decision, resolved = await transition_ticket(session, agent, ticket.id, TicketStatus.RESOLVED)
        assert decision
        assert resolved.resolved_at is not None

        decision, rated = await rate_ticket(session, owner, ticket.id, 5)
        assert decision
        assert rated.status == TicketStatus.CLOSED
        assert rated.rating == 5

        fresh = await fetch_ticket(session, ticket.id)
        assert fresh.status == TicketStatus.CLOSED
        assert fresh.closed_at is not None

        decision, _ticket = await transition_ticket(session, people["admin"], ticket.id, TicketStatus.OPEN)
        assert decision.reason == DenialReason.TICKET_CLOSED

    @pytest.mark.asyncio
    async def test_stale_status_is_rejected(self, session, people, ticket):
        admin = people["admin"]
        await transition_ticket(session, admin, ticket.id, TicketStatus.IN_PROGRESS, TicketStatus.OPEN)

        # Вторая кнопка со старой карточки
        decision, current = await transition_ticket(
            session, admin, ticket.id, TicketStatus.CLOSED, TicketStatus.OPEN
        )
        assert decision.reason == DenialReason.STATUS_MISMATCH
        assert current.status == TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("snapshot", ["BOGUS", "", "open-ish"])
    async def test_unreadable_status_snapshot_counts_as_stale(self, session, people, ticket, snapshot):
        decision, current = await transition_ticket(
            session, people["admin"], ticket.id, TicketStatus.IN_PROGRESS, snapshot
        )

        assert decision.reason == DenialReason.STATUS_MISMATCH
        assert current.status == TicketStatus.OPEN

    @pytest.mark.asyncio
    async def test_status_snapshot_may_be_a_name(self, session, people, ticket):
        decision, moved = await transition_ticket(session, people["admin"], ticket.id, "IN_PROGRESS", "OPEN")

        assert decision
        assert moved.status == TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_rule_sees_changes_made_outside_the_session_objects(self, session, people, ticket):
        """A status written directly to the DB is picked up before the rule runs."""
        await session.execute(update(Ticket).where(Ticket.id == ticket.id).values(status=TicketStatus.CLOSED))
        await session.commit()

        decision, fresh = await transition_ticket(session, people["admin"], ticket.id, TicketStatus.IN_PROGRESS)

        assert decision.reason == DenialReason.TICKET_CLOSED
        assert fresh.status == TicketStatus.CLOSED

    @pytest.mark.asyncio
    async def test_missing_ticket(self, session, people):
        decision, value = await transition_ticket(session, people["admin"], 404, TicketStatus.CLOSED)
        assert decision.reason == DenialReason.TICKET_NOT_FOUND
        assert value is None

    @pytest.mark.asyncio
    async def test_assign_non_agent_is_denied(self, session, people, ticket):
        decision, current = await assign_ticket(session, people["admin"], ticket.id, people["stranger"].id)
        assert decision.reason == DenialReason.INVALID_ASSIGNEE
        assert current.assignee_id is None

        decision, _current = await assign_ticket(session, people["admin"], ticket.id, 9999)
        assert decision.reason == DenialReason.USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_handover_between_agents(self, session, people, ticket):
        agent, other_agent = people["agent"], people["other_agent"]
        await assign_ticket(session, agent, ticket.id, agent.id)

        decision, handed = await assign_ticket(session, agent, ticket.id, other_agent.id)

        assert decision
        assert handed.assignee_id == other_agent.id
        decision, _ticket = await assign_ticket(session, agent, ticket.id, agent.id)
        assert decision.reason == DenialReason.NOT_ASSIGNEE

    @pytest.mark.asyncio
    async def test_comments(self, session, people, ticket):
        owner, admin = people["owner"], people["admin"]

        decision, comment = await add_comment(session, owner, ticket.id, "Any news?")
        assert decision
        assert comment.id is not None

        decision, comment = await add_comment(session, admin, ticket.id, "Admin note")
        assert decision.reason == DenialReason.ADMIN_READ_ONLY
        assert comment is None

        decision, _comment = await add_comment(session, people["stranger"], ticket.id, "Hi")
        assert decision.reason == DenialReason.NOT_OWNER

        fresh = await fetch_ticket(session, ticket.id)
        assert [c.content for c in fresh.comments] == ["Any news?"]
        assert fresh.comments[0].author.name == "Alice"

    @pytest.mark.asyncio
    async def test_attachments(self, session, people, ticket):
        decision, attachment = await add_attachment(
            session, people["owner"], ticket.id, file_id="AgAD123", filename="screen.png",
            size=2048, mime_type="image/png"
        )
        assert decision
        assert attachment.original_name == "screen.png"

        decision, attachment = await add_attachment(
            session, people["admin"], ticket.id, file_id="AgAD456", filename="log.txt"
        )
        assert decision.reason == DenialReason.ADMIN_READ_ONLY
        assert attachment is None

        fresh = await fetch_ticket(session, ticket.id)
        assert [a.filename for a in fresh.attachments] == ["screen.png"]

    @pytest.mark.asyncio
    async def test_rating_requires_resolved_ticket(self, session, people, ticket):
        decision, current = await rate_ticket(session, people["owner"], ticket.id, 5)
        assert decision.reason == DenialReason.TRANSITION_NOT_ALLOWED
        assert current.rating is None

    @pytest.mark.asyncio
    async def test_update_ticket(self, session, people, ticket):
        decision, updated = await update_ticket(
            session, people["owner"], ticket.id, subject="Cannot log in on mobile", priority=TicketPriority.HIGH
        )
        assert decision
        assert updated.subject == "Cannot log in on mobile"
        assert updated.priority == TicketPriority.HIGH

        decision, _ticket = await update_ticket(session, people["stranger"], ticket.id, subject="Hacked")
        assert decision.reason == DenialReason.NOT_OWNER

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, session, people, ticket):
        with pytest.raises(ValueError):
            await update_ticket(session, people["owner"], ticket.id, status=TicketStatus.CLOSED)

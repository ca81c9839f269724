"""
Handler tests: Telegram objects are mocks, the database and FSM storage are real.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiogram.filters import CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from handlers.admin import command_block
from handlers.tickets import (
    change_ticket_status, process_edit_priority, process_edit_value, select_edit_field, start_edit,
)
from handlers.user import process_priority
from models import TicketPriority, TicketStatus
from rules.decisions import DenialReason
from services.tickets import assign_ticket, create_ticket, fetch_ticket, fetch_tickets
from services.users import get_user_by_telegram_id
from utils.i18n import denial_text
from utils.states import TicketStates, UserStates


def make_callback(data: str) -> AsyncMock:
    callback = AsyncMock()
    callback.data = data
    return callback


def make_message(text: str) -> AsyncMock:
    message = AsyncMock()
    message.text = text
    return message


def answered_texts(mock) -> list:
    return [call.args[0] for call in mock.await_args_list if call.args]


@pytest.fixture
def state():
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=1, chat_id=1, user_id=1))


@pytest.fixture
def bot():
    return AsyncMock()


@pytest_asyncio.fixture
async def ticket(session, people):
    return await create_ticket(session, people["owner"], "Cannot log in", "Password reset does not work")


class TestTicketCreation:
    """Priority step of ticket creation."""

    @pytest.mark.asyncio
    async def test_unknown_priority_is_ignored(self, session, people, state, bot):
        await state.set_state(UserStates.SELECTING_PRIORITY)
        await state.update_data(new_subject="VPN", new_description="Does not connect")
        callback = make_callback("priority:CRITICAL")

        await process_priority(callback, bot, session, state, people["owner"], "en")

        callback.answer.assert_awaited_once_with()
        assert await fetch_tickets(session) == []
        assert await state.get_state() == UserStates.SELECTING_PRIORITY.state

    @pytest.mark.asyncio
    async def test_valid_priority_creates_ticket(self, session, people, state, bot):
        await state.set_state(UserStates.SELECTING_PRIORITY)
        await state.update_data(new_subject="VPN", new_description="Does not connect")

        await process_priority(make_callback("priority:HIGH"), bot, session, state, people["owner"], "en")

        tickets = await fetch_tickets(session)
        assert [(t.subject, t.priority) for t in tickets] == [("VPN", TicketPriority.HIGH)]
        # Уведомлены оба агента
        assert {call.kwargs["chat_id"] for call in bot.send_message.await_args_list} == {3, 4}


class TestTicketEditing:
    """Editing subject, description and priority from the ticket card."""

    @pytest.mark.asyncio
    async def test_owner_edits_subject(self, session, people, state, bot, ticket):
        owner = people["owner"]
        callback = make_callback(f"ticket:edit_field:{ticket.id}:subject")

        await select_edit_field(callback, session, state, owner, "en")
        assert await state.get_state() == TicketStates.EDITING_FIELD.state

        message = make_message("  Cannot log in on mobile ")
        await process_edit_value(message, bot, session, state, owner, "en")

        assert (await fetch_ticket(session, ticket.id)).subject == "Cannot log in on mobile"
        assert await state.get_state() == TicketStates.VIEWING_TICKET.state
        assert "✅ Ticket updated." in answered_texts(message.answer)
        # Исполнителя нет, автор сам себя не уведомляет
        bot.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_subject_length_is_validated(self, session, people, state, bot, ticket):
        owner = people["owner"]
        await select_edit_field(make_callback(f"ticket:edit_field:{ticket.id}:subject"), session, state, owner, "en")

        await process_edit_value(make_message("x" * 300), bot, session, state, owner, "en")

        assert (await fetch_ticket(session, ticket.id)).subject == "Cannot log in"
        assert await state.get_state() == TicketStates.EDITING_FIELD.state

    @pytest.mark.asyncio
    async def test_stranger_cannot_open_edit_menu(self, session, people, ticket):
        callback = make_callback(f"ticket:edit:{ticket.id}")

        await start_edit(callback, session, people["stranger"], "en")

        callback.answer.assert_awaited_once_with(denial_text(DenialReason.NOT_OWNER, "en"), show_alert=True)
        callback.message.edit_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_edit_rechecked_when_value_arrives(self, session, people, state, bot, ticket):
        """The ticket is closed between choosing the field and sending the value."""
        owner = people["owner"]
        await select_edit_field(make_callback(f"ticket:edit_field:{ticket.id}:description"),
                                session, state, owner, "en")
        ticket.set_status(TicketStatus.CLOSED)
        await session.commit()

        message = make_message("New description")
        await process_edit_value(message, bot, session, state, owner, "en")

        assert (await fetch_ticket(session, ticket.id)).description == "Password reset does not work"
        assert denial_text(DenialReason.TICKET_CLOSED, "en") in answered_texts(message.answer)

    @pytest.mark.asyncio
    async def test_assignee_changes_priority_and_owner_is_notified(self, session, people, state, bot, ticket):
        agent = people["agent"]
        await assign_ticket(session, agent, ticket.id, agent.id)

        await process_edit_priority(make_callback(f"ticket:edit_priority:{ticket.id}:URGENT"),
                                    bot, session, state, agent, "en")

        assert (await fetch_ticket(session, ticket.id)).priority == TicketPriority.URGENT
        bot.send_message.assert_awaited_once()
        assert bot.send_message.await_args.kwargs["chat_id"] == 1

    @pytest.mark.asyncio
    async def test_unknown_edit_values_are_ignored(self, session, people, state, bot, ticket):
        owner = people["owner"]
        for data in (f"ticket:edit_priority:{ticket.id}:CRITICAL", f"ticket:edit_field:{ticket.id}:status"):
            callback = make_callback(data)
            if "edit_priority" in data:
                await process_edit_priority(callback, bot, session, state, owner, "en")
            else:
                await select_edit_field(callback, session, state, owner, "en")
            callback.answer.assert_awaited_once_with()

        fresh = await fetch_ticket(session, ticket.id)
        assert fresh.priority == TicketPriority.MEDIUM
        assert fresh.status == TicketStatus.OPEN


class TestStatusButton:
    """Status callbacks carry the status the user saw."""

    @pytest.mark.asyncio
    async def test_unreadable_snapshot_is_refused(self, session, people, state, bot, ticket):
        callback = make_callback(f"ticket:status:{ticket.id}:GARBAGE:IN_PROGRESS")

        await change_ticket_status(callback, bot, session, state, people["admin"], "en")

        callback.answer.assert_any_await(denial_text(DenialReason.STATUS_MISMATCH, "en"), show_alert=True)
        assert (await fetch_ticket(session, ticket.id)).status == TicketStatus.OPEN


class TestBlockCommand:
    """/block and /unblock."""

    @pytest.mark.asyncio
    async def test_block_agent_returns_tickets_to_queue(self, session, people, bot, ticket):
        agent = people["agent"]
        await assign_ticket(session, agent, ticket.id, agent.id)
        message = make_message(f"/block {agent.id}")

        await command_block(message, bot, session, CommandObject(prefix="/", command="block", args=str(agent.id)),
                            people["admin"], "en")

        assert answered_texts(message.answer) == ["🚫 Agent Smith is blocked. Tickets returned to the queue: 1."]
        assert (await get_user_by_telegram_id(session, 3)).is_active is False
        assert (await fetch_ticket(session, ticket.id)).assignee_id is None
        assert bot.send_message.await_args.kwargs["chat_id"] == 3

    @pytest.mark.asyncio
    async def test_unblock(self, session, people, bot):
        admin, stranger = people["admin"], people["stranger"]
        await command_block(make_message(""), bot, session,
                            CommandObject(prefix="/", command="block", args=str(stranger.id)), admin, "en")

        message = make_message("")
        await command_block(message, bot, session,
                            CommandObject(prefix="/", command="unblock", args=str(stranger.id)), admin, "en")

        assert answered_texts(message.answer) == ["✅ Bob is active again."]
        assert (await get_user_by_telegram_id(session, 2)).is_active is True

    @pytest.mark.asyncio
    async def test_self_block_and_bad_usage(self, session, people, bot):
        admin = people["admin"]

        message = make_message("")
        await command_block(message, bot, session,
                            CommandObject(prefix="/", command="block", args=str(admin.id)), admin, "en")
        assert answered_texts(message.answer) == [denial_text(DenialReason.SELF_DEACTIVATION, "en")]

        message = make_message("")
        await command_block(message, bot, session, CommandObject(prefix="/", command="block", args=None), admin, "en")
        assert "Usage" in answered_texts(message.answer)[0]
        bot.send_message.assert_not_awaited()

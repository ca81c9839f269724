import logging

from aiogram import Router, F, Bot, Dispatcher
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from handlers.tickets import notify, quote, render_ticket, show_ticket_list
from models import TicketStatus, User, UserRole
from rules.analytics import compute_stats
from rules.lifecycle import check_assignment
from rules.query import SortDirection, SortKey, TicketCriteria, UNASSIGNED, filter_and_sort, visible_to
from services.tickets import assign_ticket, fetch_ticket, fetch_tickets, transition_ticket
from services.users import fetch_users
from utils.formatting import format_stats
from utils.i18n import _, denial_text
from utils.keyboards import KeyboardFactory
from utils.states import AgentStates

# Инициализация логгера
logger = logging.getLogger(__name__)

# Создание роутера
router = Router()

# Очередь: сначала срочные, при равном приоритете старые раньше новых
QUEUE_CRITERIA = TicketCriteria(
    assignee=UNASSIGNED,
    sort_key=SortKey.PRIORITY,
    direction=SortDirection.DESC
)


@router.callback_query(F.data == "agent:queue")
async def show_queue(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                     actor: User, language: str, config: Config):
    """
    Очередь неназначенных незакрытых тикетов. Сюда же возвращаются тикеты
    агента, лишенного роли, в каком бы статусе они ни были.
    """
    tickets = await fetch_tickets(session, unassigned=True, exclude_closed=True)
    selection = filter_and_sort(tickets, QUEUE_CRITERIA)

    await show_ticket_list(
        callback_query,
        state,
        selection,
        title=_("queue_title", language),
        language=language,
        reopen_callback="agent:queue",
        page_size=config.tg_bot.page_size,
        list_state=AgentStates.VIEWING_QUEUE
    )
    await callback_query.answer()


@router.callback_query(F.data == "agent:mine")
async def show_assigned_tickets(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                                actor: User, language: str, config: Config):
    """
    Тикеты, назначенные агенту. Незавершенные выше завершенных.
    """
    tickets = await fetch_tickets(session, assignee_id=actor.id)
    selection = filter_and_sort(
        tickets,
        TicketCriteria(assignee=actor.id, sort_key=SortKey.STATUS, direction=SortDirection.ASC)
    )

    await show_ticket_list(
        callback_query,
        state,
        selection,
        title=_("assigned_tickets_title", language),
        language=language,
        reopen_callback="agent:mine",
        page_size=config.tg_bot.page_size
    )
    await callback_query.answer()


@router.callback_query(F.data == "agent:stats")
async def show_agent_stats(callback_query: CallbackQuery, session: AsyncSession, actor: User, language: str):
    """
    Статистика по тикетам, которые видит агент: его собственные и очередь.
    """
    tickets = visible_to(actor, await fetch_tickets(session))
    stats = compute_stats(tickets)

    await callback_query.message.edit_text(
        format_stats(stats, language),
        reply_markup=KeyboardFactory.back_button("menu:main", language)
    )
    await callback_query.answer()


@router.callback_query(F.data.startswith("agent:take:"))
async def take_ticket(callback_query: CallbackQuery, bot: Bot, session: AsyncSession, state: FSMContext,
                      actor: User, language: str):
    """
    Агент берет тикет из очереди: назначает себя и переводит тикет в работу.
    """
    ticket_id = int(callback_query.data.split(":")[2])

    decision, ticket = await assign_ticket(session, actor, ticket_id, actor.id)
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    if ticket.status == TicketStatus.OPEN:
        decision, ticket = await transition_ticket(
            session, actor, ticket_id, TicketStatus.IN_PROGRESS, TicketStatus.OPEN
        )
        if not decision:
            logger.warning(f"Agent {actor.id} took ticket #{ticket_id} but could not start it: "
                           f"{decision.reason.value}")

    await state.update_data(card_back="agent:mine")
    await render_ticket(callback_query, ticket, actor, state)
    await callback_query.answer(_("ticket_taken", language, ticket_id=ticket_id))

    await notify(
        bot,
        [ticket.owner],
        lambda lang: _("notify_ticket_taken", lang, ticket_id=ticket.id, subject=quote(ticket.subject),
                       name=quote(actor.display_name))
    )

    logger.info(f"Agent {actor.id} took ticket #{ticket_id}")


@router.callback_query(F.data.startswith("agent:handover:"))
async def select_handover_agent(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                                actor: User, language: str):
    """
    Выбор агента, которому будет передан тикет.
    """
    ticket_id = int(callback_query.data.split(":")[2])
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        await callback_query.answer(_("denied_ticket_not_found", language), show_alert=True)
        return

    agents = [
        agent for agent in await fetch_users(session, role=UserRole.AGENT)
        if agent.id != actor.id and agent.is_active and check_assignment(actor, ticket, agent)
    ]
    if not agents:
        await callback_query.answer(_("no_agents_available", language), show_alert=True)
        return

    await callback_query.message.edit_text(
        _("select_agent", language, ticket_id=ticket_id),
        reply_markup=KeyboardFactory.agents_selection(
            agents, "agent:handover_to", ticket_id, back_callback=f"ticket:view:{ticket_id}", language=language
        )
    )
    await state.set_state(AgentStates.SELECTING_HANDOVER)
    await callback_query.answer()


@router.callback_query(F.data.startswith("agent:handover_to:"))
async def handover_ticket(callback_query: CallbackQuery, bot: Bot, session: AsyncSession, state: FSMContext,
                          actor: User, language: str):
    """
    Передача тикета другому агенту. После передачи агент больше не видит тикет.
    """
    _prefix, _action, ticket_id, agent_id = callback_query.data.split(":")

    decision, ticket = await assign_ticket(session, actor, int(ticket_id), int(agent_id))
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    await callback_query.message.edit_text(
        _("ticket_handed_over", language, ticket_id=ticket.id, name=quote(ticket.assignee.display_name)),
        reply_markup=KeyboardFactory.back_button("agent:mine", language)
    )
    await state.set_state(AgentStates.MAIN_MENU)
    await callback_query.answer()

    await notify(
        bot,
        [ticket.assignee],
        lambda lang: _("notify_ticket_assigned", lang, ticket_id=ticket.id, subject=quote(ticket.subject)),
        exclude=actor
    )

    logger.info(f"Agent {actor.id} handed ticket #{ticket.id} over to agent {agent_id}")


def register_handlers(dp: Dispatcher):
    """
    Регистрирует все обработчики данного модуля.

    Args:
        dp: Диспетчер
    """
    dp.include_router(router)

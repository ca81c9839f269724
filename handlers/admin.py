import logging
from typing import Any, Dict

from aiogram import Router, F, Bot, Dispatcher
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from handlers.tickets import notify, quote, render_ticket, show_ticket_list
from models import TicketStatus, User, UserRole
from rules.analytics import compute_stats
from rules.lifecycle import check_assignment
from rules.query import ALL, UNASSIGNED, SortDirection, SortKey, TicketCriteria, filter_and_sort
from services.tickets import assign_ticket, fetch_ticket, fetch_tickets
from services.users import fetch_users, set_user_active, set_user_role
from utils.emoji import USER_ROLE_EMOJI
from utils.formatting import format_stats
from utils.i18n import _, denial_text
from utils.keyboards import KeyboardFactory
from utils.states import AdminStates

# Инициализация логгера
logger = logging.getLogger(__name__)

# Создание роутера
router = Router()

# Сколько пользователей показывать в списке
USERS_LIST_LIMIT = 50


def criteria_from_data(data: Dict[str, Any]) -> TicketCriteria:
    """
    Восстанавливает критерии списка тикетов из данных FSM.
    В хранилище лежат только строки, чтобы его можно было сериализовать.
    """
    status = data.get("filter_status")
    return TicketCriteria(
        search=data.get("filter_search"),
        status=TicketStatus[status] if status else None,
        assignee=data.get("filter_assignee", ALL),
        sort_key=SortKey(data.get("filter_sort_key", SortKey.CREATED_AT.value)),
        direction=SortDirection(data.get("filter_direction", SortDirection.DESC.value)),
    )


def criteria_title(criteria: TicketCriteria, language: str) -> str:
    """Заголовок списка с описанием примененных фильтров."""
    parts = [_("all_tickets_title", language)]
    if criteria.status is not None:
        parts.append(_("filter_status", language, status=_(f"status_{criteria.status.value}", language)))
    if criteria.assignee == UNASSIGNED:
        parts.append(_("filter_unassigned", language))
    if criteria.search:
        parts.append(_("filter_search", language, search=quote(criteria.search)))
    arrow = "⬇️" if criteria.direction == SortDirection.DESC else "⬆️"
    parts.append(_("filter_sort", language, key=_(f"sort_{criteria.sort_key.value}", language), direction=arrow))
    return "\n".join(parts)


async def show_all_tickets(target, session: AsyncSession, state: FSMContext, language: str, page_size: int):
    data = await state.get_data()
    criteria = criteria_from_data(data)
    selection = filter_and_sort(await fetch_tickets(session), criteria)

    await show_ticket_list(
        target,
        state,
        selection,
        title=criteria_title(criteria, language),
        language=language,
        page_size=page_size,
        extra_rows=KeyboardFactory.admin_filters(language),
        reopen_callback="admin:tickets",
        list_state=AdminStates.VIEWING_TICKETS
    )


@router.callback_query(F.data == "admin:stats")
async def show_general_stats(callback_query: CallbackQuery, session: AsyncSession, language: str):
    """
    Общая статистика по всем тикетам и пользователям.
    """
    stats = compute_stats(await fetch_tickets(session), await fetch_users(session))

    await callback_query.message.edit_text(
        format_stats(stats, language),
        reply_markup=KeyboardFactory.back_button("menu:main", language)
    )
    await callback_query.answer()


@router.callback_query(F.data == "admin:tickets")
async def show_tickets(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                       language: str, config: Config):
    """
    Все тикеты с текущими фильтрами и сортировкой.
    """
    await show_all_tickets(callback_query, session, state, language, config.tg_bot.page_size)
    await callback_query.answer()


@router.callback_query(F.data.startswith("admin:filter:"))
async def apply_filter(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                       language: str, config: Config):
    """
    Фильтр по статусу (admin:filter:OPEN), сброс фильтров (admin:filter:all)
    или переключение фильтра неназначенных (admin:filter:unassigned).
    """
    value = callback_query.data.split(":")[2]
    data = await state.get_data()

    if value == ALL:
        await state.update_data(filter_status=None, filter_assignee=ALL, filter_search=None)
    elif value == UNASSIGNED:
        current = data.get("filter_assignee", ALL)
        await state.update_data(filter_assignee=ALL if current == UNASSIGNED else UNASSIGNED)
    elif value in TicketStatus.__members__:
        await state.update_data(filter_status=value)
    else:
        await callback_query.answer()
        return

    await show_all_tickets(callback_query, session, state, language, config.tg_bot.page_size)
    await callback_query.answer()


@router.callback_query(F.data.startswith("admin:sort:"))
async def apply_sort(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                     language: str, config: Config):
    """
    Сортировка списка. Повторное нажатие на тот же ключ меняет направление.
    """
    key = SortKey(callback_query.data.split(":")[2])
    data = await state.get_data()

    direction = SortDirection.DESC
    if data.get("filter_sort_key") == key.value and data.get("filter_direction") == SortDirection.DESC.value:
        direction = SortDirection.ASC

    await state.update_data(filter_sort_key=key.value, filter_direction=direction.value)
    await show_all_tickets(callback_query, session, state, language, config.tg_bot.page_size)
    await callback_query.answer()


@router.callback_query(F.data == "admin:search")
async def start_search(callback_query: CallbackQuery, state: FSMContext, language: str):
    await callback_query.message.edit_text(
        _("enter_search", language),
        reply_markup=KeyboardFactory.back_button("admin:tickets", language)
    )
    await state.set_state(AdminStates.SEARCHING_TICKETS)
    await callback_query.answer()


@router.message(AdminStates.SEARCHING_TICKETS, F.text)
async def process_search(message: Message, session: AsyncSession, state: FSMContext, language: str, config: Config):
    """
    Сохраняет строку поиска. Пустая строка или "-" сбрасывает поиск.
    """
    search = message.text.strip()
    await state.update_data(filter_search=None if search in ("", "-") else search)
    await show_all_tickets(message, session, state, language, config.tg_bot.page_size)


@router.callback_query(F.data.startswith("admin:assign:"))
async def select_assignee(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                          actor: User, language: str):
    """
    Выбор агента для назначения на тикет.
    """
    ticket_id = int(callback_query.data.split(":")[2])
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        await callback_query.answer(_("denied_ticket_not_found", language), show_alert=True)
        return

    agents = [
        agent for agent in await fetch_users(session, role=UserRole.AGENT)
        if agent.is_active and agent.id != ticket.assignee_id and check_assignment(actor, ticket, agent)
    ]
    if not agents:
        await callback_query.answer(_("no_agents_available", language), show_alert=True)
        return

    await callback_query.message.edit_text(
        _("select_agent", language, ticket_id=ticket_id),
        reply_markup=KeyboardFactory.agents_selection(
            agents, "admin:assign_to", ticket_id, back_callback=f"ticket:view:{ticket_id}", language=language
        )
    )
    await state.set_state(AdminStates.SELECTING_ASSIGNEE)
    await callback_query.answer()


@router.callback_query(F.data.startswith("admin:assign_to:"))
async def assign_to_agent(callback_query: CallbackQuery, bot: Bot, session: AsyncSession, state: FSMContext,
                          actor: User, language: str):
    _prefix, _action, ticket_id, agent_id = callback_query.data.split(":")

    decision, ticket = await assign_ticket(session, actor, int(ticket_id), int(agent_id))
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    await render_ticket(callback_query, ticket, actor, state)
    await callback_query.answer(_("ticket_assigned", language, name=ticket.assignee.display_name))

    await notify(
        bot,
        [ticket.assignee],
        lambda lang: _("notify_ticket_assigned", lang, ticket_id=ticket.id, subject=quote(ticket.subject)),
        exclude=actor
    )

    logger.info(f"Admin {actor.id} assigned ticket #{ticket.id} to agent {agent_id}")


@router.callback_query(F.data == "admin:users")
async def show_users(callback_query: CallbackQuery, session: AsyncSession, language: str):
    """
    Список пользователей с ролями. Роль меняется командой /role.
    """
    users = await fetch_users(session)

    lines = ["👥 <b>" + _("users_title", language, count=len(users)) + "</b>", ""]
    for user in users[:USERS_LIST_LIMIT]:
        status = "" if user.is_active else " 🚫"
        lines.append(f"{USER_ROLE_EMOJI.get(user.role, '')} <code>{user.id}</code> {quote(user.display_name)}{status}")
    if len(users) > USERS_LIST_LIMIT:
        lines.append("…")
    lines += ["", _("users_role_hint", language)]

    await callback_query.message.edit_text(
        "\n".join(lines),
        reply_markup=KeyboardFactory.back_button("menu:main", language)
    )
    await callback_query.answer()


@router.message(Command("role"))
async def command_role(message: Message, bot: Bot, session: AsyncSession, command: CommandObject,
                       actor: User, language: str):
    """
    Обработчик команды /role <id пользователя> <user|agent|admin>.
    """
    args = (command.args or "").split()
    if len(args) != 2 or not args[0].isdigit():
        await message.answer(_("role_usage", language))
        return

    decision, target = await set_user_role(session, actor, int(args[0]), args[1])
    if not decision:
        await message.answer(denial_text(decision.reason, language))
        return

    await message.answer(_("role_changed", language, name=quote(target.display_name), role=target.role.value))

    await notify(
        bot,
        [target],
        lambda lang: _("notify_role_changed", lang, role=target.role.value),
        exclude=actor
    )


@router.message(Command("block", "unblock"))
async def command_block(message: Message, bot: Bot, session: AsyncSession, command: CommandObject,
                        actor: User, language: str):
    """
    Обработчик команд /block <id пользователя> и /unblock <id пользователя>.
    Заблокированный пользователь теряет доступ к боту, его незакрытые тикеты возвращаются в очередь.
    """
    args = (command.args or "").split()
    if len(args) != 1 or not args[0].isdigit():
        await message.answer(_("block_usage", language))
        return

    active = command.command == "unblock"
    decision, target, released = await set_user_active(session, actor, int(args[0]), active)
    if not decision:
        await message.answer(denial_text(decision.reason, language))
        return

    if active:
        await message.answer(_("user_unblocked", language, name=quote(target.display_name)))
    else:
        await message.answer(_("user_blocked", language, name=quote(target.display_name), count=len(released)))

    await notify(
        bot,
        [target],
        lambda lang: _("notify_account_unblocked" if active else "notify_account_blocked", lang),
        exclude=actor
    )


def register_handlers(dp: Dispatcher):
    """
    Регистрирует все обработчики данного модуля.

    Args:
        dp: Диспетчер
    """
    dp.include_router(router)

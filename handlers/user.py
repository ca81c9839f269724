import logging

from aiogram import Router, F, Bot, Dispatcher
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from handlers.tickets import MAX_SUBJECT_LENGTH, notify, quote, send_ticket, show_ticket_list
from models import TicketPriority, User, UserRole
from rules.query import TicketCriteria, filter_and_sort
from services.tickets import create_ticket, fetch_tickets
from services.users import fetch_users
from utils.i18n import _
from utils.keyboards import KeyboardFactory
from utils.states import UserStates

# Инициализация логгера
logger = logging.getLogger(__name__)

# Создание роутера
router = Router()


@router.callback_query(F.data == "user:create")
async def start_ticket_creation(callback_query: CallbackQuery, state: FSMContext, actor: User, language: str):
    """
    Начало создания тикета: запрашиваем тему.
    """
    await callback_query.message.edit_text(
        _("enter_subject", language),
        reply_markup=KeyboardFactory.back_button("menu:main", language)
    )
    await state.set_state(UserStates.ENTERING_SUBJECT)
    await callback_query.answer()

    logger.info(f"User {actor.id} started ticket creation")


@router.message(UserStates.ENTERING_SUBJECT, F.text)
async def process_subject(message: Message, state: FSMContext, language: str):
    subject = message.text.strip()
    if not subject or len(subject) > MAX_SUBJECT_LENGTH:
        await message.answer(_("error_subject_length", language, max_length=MAX_SUBJECT_LENGTH))
        return

    await state.update_data(new_subject=subject)
    await message.answer(_("enter_description", language))
    await state.set_state(UserStates.ENTERING_DESCRIPTION)


@router.message(UserStates.ENTERING_DESCRIPTION, F.text)
async def process_description(message: Message, state: FSMContext, language: str):
    description = message.text.strip()
    if not description:
        await message.answer(_("enter_description", language))
        return

    await state.update_data(new_description=description)
    await message.answer(_("select_priority", language), reply_markup=KeyboardFactory.priority_selection(language))
    await state.set_state(UserStates.SELECTING_PRIORITY)


@router.callback_query(UserStates.SELECTING_PRIORITY, F.data.startswith("priority:"))
async def process_priority(callback_query: CallbackQuery, bot: Bot, session: AsyncSession, state: FSMContext,
                           actor: User, language: str):
    """
    Завершение создания тикета: сохраняем его и уведомляем агентов.
    """
    priority_name = callback_query.data.split(":")[1]
    if priority_name not in TicketPriority.__members__:
        await callback_query.answer()
        return

    priority = TicketPriority[priority_name]
    data = await state.get_data()

    try:
        ticket = await create_ticket(
            session,
            owner=actor,
            subject=data["new_subject"],
            description=data["new_description"],
            priority=priority
        )
    except KeyError:
        # Состояние потеряно (например, после перезапуска бота)
        await callback_query.answer(_("error_session_expired", language), show_alert=True)
        await state.clear()
        return

    await state.update_data(new_subject=None, new_description=None, card_back="user:tickets")
    await callback_query.message.edit_text(_("ticket_created", language, ticket_id=ticket.id))
    await send_ticket(callback_query.message, ticket, actor, state)
    await callback_query.answer()

    agents = await fetch_users(session, role=UserRole.AGENT)
    await notify(
        bot,
        agents,
        lambda lang: _("notify_new_ticket", lang, ticket_id=ticket.id, subject=quote(ticket.subject),
                       priority=_(f"priority_{ticket.priority.value}", lang)),
        exclude=actor
    )


@router.callback_query(F.data == "user:tickets")
async def show_my_tickets(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                          actor: User, language: str, config: Config):
    """
    Список тикетов пользователя, новые сверху.
    """
    tickets = await fetch_tickets(session, owner_id=actor.id)
    selection = filter_and_sort(tickets, TicketCriteria(owner=actor.id))

    await show_ticket_list(
        callback_query,
        state,
        selection,
        title=_("my_tickets_title", language),
        language=language,
        reopen_callback="user:tickets",
        page_size=config.tg_bot.page_size,
        list_state=UserStates.VIEWING_TICKETS
    )
    await callback_query.answer()


def register_handlers(dp: Dispatcher):
    """
    Регистрирует все обработчики данного модуля.

    Args:
        dp: Диспетчер
    """
    dp.include_router(router)

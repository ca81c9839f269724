import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from aiogram import Router, F, Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardButton, Message
from aiogram.utils.text_decorations import html_decoration
from sqlalchemy.ext.asyncio import AsyncSession

from models import Ticket, TicketPriority, User
from rules.comments import check_comment
from rules.decisions import DenialReason
from rules.lifecycle import can_view, check_edit, normalize_status
from services.tickets import (
    add_attachment, add_comment, fetch_ticket, rate_ticket, transition_ticket, update_ticket
)
from utils.formatting import format_ticket_card, ticket_button_text
from utils.i18n import _, denial_text
from utils.keyboards import KeyboardFactory
from utils.paginator import Paginator
from utils.states import TicketStates

# Инициализация логгера
logger = logging.getLogger(__name__)

# Создание роутера
router = Router()

DEFAULT_PAGE_SIZE = 5
MAX_SUBJECT_LENGTH = 255

# Поля, которые редактируются вводом текста
TEXT_FIELDS = ("subject", "description")

quote = html_decoration.quote


async def notify(bot: Bot, users: Iterable[Optional[User]], render: Callable[[str], str],
                 exclude: Optional[User] = None):
    """
    Отправляет уведомление пользователям, пропуская отправителя и пользователей без Telegram.
    Ошибки отправки логируются и не прерывают обработку.

    Args:
        bot: Экземпляр бота
        users: Получатели
        render: Функция, возвращающая текст уведомления на языке получателя
        exclude: Пользователь, которого не нужно уведомлять
    """
    seen = set()
    for user in users:
        if user is None or user.telegram_id is None or user.id in seen:
            continue
        if exclude is not None and user.id == exclude.id:
            continue
        seen.add(user.id)
        try:
            await bot.send_message(chat_id=user.telegram_id, text=render(user.language))
        except TelegramAPIError as e:
            logger.error(f"Failed to send notification to user {user.telegram_id}: {e}")


async def render_ticket(callback_query: CallbackQuery, ticket: Ticket, actor: User, state: FSMContext):
    """Показывает карточку тикета с доступными действиями вместо текущего сообщения."""
    data = await state.get_data()
    await callback_query.message.edit_text(
        format_ticket_card(ticket, actor.language),
        reply_markup=KeyboardFactory.ticket_actions(
            ticket, actor, back_callback=data.get("card_back", "menu:main"), language=actor.language
        )
    )
    await state.set_state(TicketStates.VIEWING_TICKET)
    await state.update_data(active_ticket_id=ticket.id)


async def send_ticket(message: Message, ticket: Ticket, actor: User, state: FSMContext):
    """То же, что render_ticket, но карточка отправляется новым сообщением."""
    data = await state.get_data()
    await message.answer(
        format_ticket_card(ticket, actor.language),
        reply_markup=KeyboardFactory.ticket_actions(
            ticket, actor, back_callback=data.get("card_back", "menu:main"), language=actor.language
        )
    )
    await state.set_state(TicketStates.VIEWING_TICKET)
    await state.update_data(active_ticket_id=ticket.id)


async def show_ticket_list(
        target: Union[CallbackQuery, Message],
        state: FSMContext,
        tickets: Iterable[Ticket],
        title: str,
        language: str,
        back_callback: str = "menu:main",
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        extra_rows: List[List[InlineKeyboardButton]] = None,
        reopen_callback: str = None,
        list_state=None
):
    """
    Показывает постраничный список тикетов.

    Список сохраняется в состоянии, чтобы работали кнопки пагинации.
    Кнопка "Назад" в карточке тикета ведет на reopen_callback, который
    заново строит этот список.
    """
    items = [{"id": ticket.id, "text": ticket_button_text(ticket)} for ticket in tickets]
    await state.update_data(
        list_items=items,
        list_title=title,
        list_back=back_callback,
        list_page_size=page_size,
        list_has_filters=extra_rows is not None,
        card_back=reopen_callback or back_callback,
    )
    await _render_list(target, state, items, page, extra_rows, language)
    if list_state is not None:
        await state.set_state(list_state)


async def _render_list(
        target: Union[CallbackQuery, Message],
        state: FSMContext,
        items: List[Dict[str, Any]],
        page: int,
        extra_rows: Optional[List[List[InlineKeyboardButton]]],
        language: str
):
    data = await state.get_data()
    page_size = data.get("list_page_size", DEFAULT_PAGE_SIZE)
    paginator = Paginator(items, page_size=page_size)
    page = paginator.clamp(page)
    page_info = paginator.get_page_info(page)

    text = data.get("list_title", "")
    if not items:
        text += "\n\n" + _("list_empty", language)
    else:
        text += "\n\n" + _("page_info", language,
                           current_page=page_info["current_page"],
                           total_pages=page_info["total_pages"],
                           total_items=page_info["total_items"])

    markup = KeyboardFactory.paginated_list(
        items,
        page,
        page_size=page_size,
        action_prefix="ticket:view",
        back_callback=data.get("list_back", "menu:main"),
        extra_rows=extra_rows,
        language=language
    )

    if isinstance(target, CallbackQuery):
        await target.message.edit_text(text, reply_markup=markup)
    else:
        await target.answer(text, reply_markup=markup)
    await state.update_data(list_page=page)


@router.callback_query(F.data.startswith("page:"))
async def process_page(callback_query: CallbackQuery, state: FSMContext, actor: Optional[User], language: str):
    """
    Переключение страницы сохраненного списка тикетов.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    page = int(callback_query.data.split(":")[1])
    data = await state.get_data()
    extra_rows = KeyboardFactory.admin_filters(language) if data.get("list_has_filters") else None

    await _render_list(callback_query, state, data.get("list_items", []), page, extra_rows, language)
    await callback_query.answer()


@router.callback_query(F.data.startswith("ticket:view:"))
async def view_ticket(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                      actor: Optional[User], language: str):
    """
    Обработчик просмотра карточки тикета. Доступен всем ролям в пределах видимости.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    ticket_id = int(callback_query.data.split(":")[2])
    ticket = await fetch_ticket(session, ticket_id)

    if ticket is None or not can_view(actor, ticket):
        await callback_query.answer(denial_text(DenialReason.TICKET_NOT_FOUND, language), show_alert=True)
        return

    await render_ticket(callback_query, ticket, actor, state)
    await callback_query.answer()

    logger.info(f"User {actor.id} viewed ticket #{ticket_id}")


@router.callback_query(F.data.startswith("ticket:status:"))
async def change_ticket_status(callback_query: CallbackQuery, bot: Bot, session: AsyncSession, state: FSMContext,
                               actor: Optional[User], language: str):
    """
    Обработчик смены статуса тикета.
    Callback содержит статус, который видел пользователь, чтобы отклонить переход по устаревшей карточке.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    _prefix, _action, ticket_id, from_name, to_name = callback_query.data.split(":")
    to_status = normalize_status(to_name)

    decision, ticket = await transition_ticket(session, actor, int(ticket_id), to_status, from_name)

    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        if ticket is not None and can_view(actor, ticket):
            await render_ticket(callback_query, ticket, actor, state)
        return

    await render_ticket(callback_query, ticket, actor, state)
    await callback_query.answer(_("ticket_status_changed", language, status=_(f"status_{to_status.value}", language)))

    await notify(
        bot,
        [ticket.owner, ticket.assignee],
        lambda lang: _("notify_status_changed", lang, ticket_id=ticket.id, subject=quote(ticket.subject),
                       status=_(f"status_{to_status.value}", lang)),
        exclude=actor
    )

    logger.info(f"User {actor.id} moved ticket #{ticket.id} {from_name} -> {to_name}")


@router.callback_query(F.data.startswith("ticket:comment:"))
async def start_comment(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                        actor: Optional[User], language: str):
    """
    Переводит пользователя в режим ввода комментария, если он может писать в тикет.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    ticket_id = int(callback_query.data.split(":")[2])
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        await callback_query.answer(denial_text(DenialReason.TICKET_NOT_FOUND, language), show_alert=True)
        return

    decision = check_comment(actor, ticket)
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    await state.set_state(TicketStates.WRITING_COMMENT)
    await state.update_data(active_ticket_id=ticket.id)
    await callback_query.message.answer(_("enter_comment", language, ticket_id=ticket.id))
    await callback_query.answer()


@router.message(TicketStates.WRITING_COMMENT, F.document | F.photo)
async def process_attachment(message: Message, bot: Bot, session: AsyncSession, state: FSMContext,
                             actor: Optional[User], language: str):
    """
    Сохраняет документ или фото как вложение к тикету.
    Подпись к файлу, если она есть, добавляется отдельным комментарием.
    """
    if actor is None:
        await message.answer(_("error_not_registered", language))
        return

    data = await state.get_data()
    ticket_id = data.get("active_ticket_id")

    if message.document:
        file = message.document
        filename = file.file_name or f"document_{file.file_unique_id}"
        mime_type = file.mime_type
    else:
        file = message.photo[-1]  # Фото максимального размера
        filename = f"photo_{file.file_unique_id}.jpg"
        mime_type = "image/jpeg"

    decision, attachment = await add_attachment(
        session, actor, ticket_id,
        file_id=file.file_id, filename=filename, size=file.file_size or 0, mime_type=mime_type
    )
    if not decision:
        await message.answer(denial_text(decision.reason, language))
        return

    if message.caption:
        await add_comment(session, actor, ticket_id, message.caption)

    ticket = await fetch_ticket(session, ticket_id)
    await message.answer(_("attachment_saved", language, filename=attachment.filename))
    await send_ticket(message, ticket, actor, state)

    await notify(
        bot,
        [ticket.owner, ticket.assignee],
        lambda lang: _("notify_new_attachment", lang, ticket_id=ticket.id, name=quote(actor.display_name)),
        exclude=actor
    )


@router.message(TicketStates.WRITING_COMMENT, F.text)
async def process_comment(message: Message, bot: Bot, session: AsyncSession, state: FSMContext,
                          actor: Optional[User], language: str):
    """
    Сохраняет комментарий к тикету. Право на комментарий проверяется заново
    по актуальному состоянию тикета.
    """
    if actor is None:
        await message.answer(_("error_not_registered", language))
        return

    data = await state.get_data()
    ticket_id = data.get("active_ticket_id")

    decision, comment = await add_comment(session, actor, ticket_id, message.text)
    if not decision:
        await message.answer(denial_text(decision.reason, language))
        return

    ticket = await fetch_ticket(session, ticket_id)
    await message.answer(_("comment_saved", language))
    await send_ticket(message, ticket, actor, state)

    await notify(
        bot,
        [ticket.owner, ticket.assignee],
        lambda lang: _("notify_new_comment", lang, ticket_id=ticket.id, name=quote(actor.display_name),
                       text=quote(comment.content)),
        exclude=actor
    )

    logger.info(f"User {actor.id} commented on ticket #{ticket_id}")


async def _notify_edited(bot: Bot, ticket: Ticket, actor: User):
    await notify(
        bot,
        [ticket.owner, ticket.assignee],
        lambda lang: _("notify_ticket_updated", lang, ticket_id=ticket.id, subject=quote(ticket.subject),
                       name=quote(actor.display_name)),
        exclude=actor
    )


@router.callback_query(F.data.startswith("ticket:edit:"))
async def start_edit(callback_query: CallbackQuery, session: AsyncSession, actor: Optional[User],
                     language: str):
    """
    Меню редактирования тикета: тема, описание или приоритет.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    ticket_id = int(callback_query.data.split(":")[2])
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        await callback_query.answer(denial_text(DenialReason.TICKET_NOT_FOUND, language), show_alert=True)
        return

    decision = check_edit(actor, ticket)
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    await callback_query.message.edit_text(
        _("edit_select_field", language, ticket_id=ticket.id),
        reply_markup=KeyboardFactory.edit_fields(ticket.id, language)
    )
    await callback_query.answer()


@router.callback_query(F.data.startswith("ticket:edit_field:"))
async def select_edit_field(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                            actor: Optional[User], language: str):
    """
    Для текстовых полей ждем новое значение сообщением, для приоритета показываем кнопки.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    _prefix, _action, ticket_id, field = callback_query.data.split(":")
    if field not in TEXT_FIELDS and field != "priority":
        await callback_query.answer()
        return

    ticket = await fetch_ticket(session, int(ticket_id))
    if ticket is None:
        await callback_query.answer(denial_text(DenialReason.TICKET_NOT_FOUND, language), show_alert=True)
        return

    decision = check_edit(actor, ticket)
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    if field == "priority":
        await callback_query.message.edit_text(
            _("select_priority", language),
            reply_markup=KeyboardFactory.priority_selection(
                language, action_prefix=f"ticket:edit_priority:{ticket.id}"
            )
        )
    else:
        await state.set_state(TicketStates.EDITING_FIELD)
        await state.update_data(active_ticket_id=ticket.id, edit_field=field)
        await callback_query.message.answer(
            _("edit_enter_value", language, field=_(f"ticket_field_{field}", language), ticket_id=ticket.id)
        )
    await callback_query.answer()


@router.message(TicketStates.EDITING_FIELD, F.text)
async def process_edit_value(message: Message, bot: Bot, session: AsyncSession, state: FSMContext,
                             actor: Optional[User], language: str):
    """
    Сохраняет новую тему или описание. Право на изменение проверяется заново.
    """
    if actor is None:
        await message.answer(_("error_not_registered", language))
        return

    data = await state.get_data()
    ticket_id = data.get("active_ticket_id")
    field = data.get("edit_field")
    if ticket_id is None or field not in TEXT_FIELDS:
        await message.answer(_("error_session_expired", language))
        await state.clear()
        return

    value = message.text.strip()
    if field == "subject" and (not value or len(value) > MAX_SUBJECT_LENGTH):
        await message.answer(_("error_subject_length", language, max_length=MAX_SUBJECT_LENGTH))
        return
    if not value:
        await message.answer(_("error_empty_value", language))
        return

    decision, ticket = await update_ticket(session, actor, ticket_id, **{field: value})
    if not decision:
        await message.answer(denial_text(decision.reason, language))
        await state.set_state(TicketStates.VIEWING_TICKET)
        return

    await state.update_data(edit_field=None)
    await message.answer(_("ticket_updated", language))
    await send_ticket(message, ticket, actor, state)
    await _notify_edited(bot, ticket, actor)


@router.callback_query(F.data.startswith("ticket:edit_priority:"))
async def process_edit_priority(callback_query: CallbackQuery, bot: Bot, session: AsyncSession,
                                state: FSMContext, actor: Optional[User], language: str):
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    _prefix, _action, ticket_id, priority_name = callback_query.data.split(":")
    if priority_name not in TicketPriority.__members__:
        await callback_query.answer()
        return

    decision, ticket = await update_ticket(
        session, actor, int(ticket_id), priority=TicketPriority[priority_name]
    )
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    await render_ticket(callback_query, ticket, actor, state)
    await callback_query.answer(_("ticket_updated", language))
    await _notify_edited(bot, ticket, actor)


@router.callback_query(F.data.startswith("ticket:rate:"))
async def process_rating(callback_query: CallbackQuery, bot: Bot, session: AsyncSession, state: FSMContext,
                         actor: Optional[User], language: str):
    """
    Обработчик оценки решенного тикета его автором. Оценка закрывает тикет.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    _prefix, _action, ticket_id, rating = callback_query.data.split(":")

    decision, ticket = await rate_ticket(session, actor, int(ticket_id), int(rating))
    if not decision:
        await callback_query.answer(denial_text(decision.reason, language), show_alert=True)
        return

    await render_ticket(callback_query, ticket, actor, state)
    await callback_query.answer(_("thank_you_for_rating", language))

    await notify(
        bot,
        [ticket.assignee],
        lambda lang: _("notify_rated", lang, ticket_id=ticket.id, rating=rating),
        exclude=actor
    )


def register_handlers(dp: Dispatcher):
    """
    Регистрирует все обработчики данного модуля.

    Args:
        dp: Диспетчер
    """
    dp.include_router(router)

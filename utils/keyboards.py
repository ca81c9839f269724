from typing import Any, Dict, List

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton, ReplyKeyboardMarkup, KeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from models import Ticket, TicketPriority, TicketStatus, User, UserRole
from rules.comments import can_comment
from rules.lifecycle import (
    MAX_RATING, MIN_RATING, available_transitions, can_edit, check_assignment, check_rating
)
from rules.query import SortKey
from rules.roles import normalize_role
from utils.emoji import KEYBOARD_EMOJI, TICKET_PRIORITY_EMOJI, TICKET_STATUS_EMOJI
from utils.i18n import _

MENU_BUTTON_TEXT = "📋 Menu"

LANGUAGE_LABELS = {
    "en": "🇬🇧 English",
    "ru": "🇷🇺 Русский",
}


class KeyboardFactory:
    """
    Фабрика для создания клавиатур бота.
    Набор кнопок зависит от роли пользователя и от того, что разрешают правила.
    """

    @staticmethod
    def language_selection(languages: List[str], user_language: str = None) -> InlineKeyboardMarkup:
        """
        Создает клавиатуру для выбора языка.

        Args:
            languages: Доступные языки
            user_language: Текущий язык пользователя (отмечается галочкой)
        """
        kb = InlineKeyboardBuilder()

        for code in languages:
            text = LANGUAGE_LABELS.get(code, code) + (" ✓" if code == user_language else "")
            kb.add(InlineKeyboardButton(text=text, callback_data=f"language:{code}"))

        if user_language:
            kb.add(InlineKeyboardButton(text=_("action_back", user_language), callback_data="menu:main"))

        kb.adjust(1)
        return kb.as_markup()

    @staticmethod
    def main_menu(role: UserRole, language: str = None) -> InlineKeyboardMarkup:
        """
        Создает главное меню в зависимости от роли пользователя.

        Args:
            role: Роль пользователя
            language: Язык пользователя

        Returns:
            InlineKeyboardMarkup: Клавиатура главного меню
        """
        kb = InlineKeyboardBuilder()
        role = normalize_role(role)

        if role == UserRole.USER:
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['create']} " + _("menu_create_ticket", language),
                callback_data="user:create"
            ))
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['tickets']} " + _("menu_my_tickets", language),
                callback_data="user:tickets"
            ))
        elif role == UserRole.AGENT:
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['queue']} " + _("menu_queue", language),
                callback_data="agent:queue"
            ))
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['tickets']} " + _("menu_assigned_tickets", language),
                callback_data="agent:mine"
            ))
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['stats']} " + _("menu_my_stats", language),
                callback_data="agent:stats"
            ))
        elif role == UserRole.ADMIN:
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['stats']} " + _("menu_general_stats", language),
                callback_data="admin:stats"
            ))
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['tickets']} " + _("menu_all_tickets", language),
                callback_data="admin:tickets"
            ))
            kb.add(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['users']} " + _("menu_users", language),
                callback_data="admin:users"
            ))

        kb.add(InlineKeyboardButton(
            text=f"{KEYBOARD_EMOJI['language']} " + _("menu_change_language", language),
            callback_data="menu:language"
        ))

        # Размещаем кнопки в два столбца
        kb.adjust(2)
        return kb.as_markup()

    @staticmethod
    def main_reply_keyboard() -> ReplyKeyboardMarkup:
        """Постоянная reply-клавиатура с кнопкой вызова меню."""
        return ReplyKeyboardMarkup(keyboard=[[KeyboardButton(text=MENU_BUTTON_TEXT)]], resize_keyboard=True)

    @staticmethod
    def priority_selection(language: str = None, action_prefix: str = "priority") -> InlineKeyboardMarkup:
        kb = InlineKeyboardBuilder()

        for priority in TicketPriority:
            kb.add(InlineKeyboardButton(
                text=f"{TICKET_PRIORITY_EMOJI[priority]} " + _(f"priority_{priority.value}", language),
                callback_data=f"{action_prefix}:{priority.name}"
            ))

        kb.adjust(2)
        return kb.as_markup()

    @staticmethod
    def ticket_actions(ticket: Ticket, actor: User, back_callback: str = "menu:main",
                       language: str = None) -> InlineKeyboardMarkup:
        """
        Создает клавиатуру действий для тикета.
        Показываются только действия, которые правила разрешают этому пользователю.

        Args:
            ticket: Тикет (актуальная копия из БД)
            actor: Текущий пользователь
            back_callback: Callback для кнопки "Назад"
            language: Язык пользователя

        Returns:
            InlineKeyboardMarkup: Клавиатура с действиями
        """
        kb = InlineKeyboardBuilder()
        role = normalize_role(actor.role)

        for target in available_transitions(actor, ticket):
            kb.row(InlineKeyboardButton(
                text=f"{TICKET_STATUS_EMOJI[target]} " + _(f"action_status_{target.value}", language),
                callback_data=f"ticket:status:{ticket.id}:{ticket.status.name}:{target.name}"
            ))

        if can_comment(actor, ticket):
            kb.row(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['comment']} " + _("action_comment", language),
                callback_data=f"ticket:comment:{ticket.id}"
            ))

        if can_edit(actor, ticket):
            kb.row(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['edit']} " + _("action_edit", language),
                callback_data=f"ticket:edit:{ticket.id}"
            ))

        if role == UserRole.AGENT and check_assignment(actor, ticket, actor) and ticket.assignee_id is None:
            kb.row(InlineKeyboardButton(
                text=_("action_take_ticket", language),
                callback_data=f"agent:take:{ticket.id}"
            ))
        elif role == UserRole.AGENT and ticket.assignee_id == actor.id and not ticket.is_closed:
            kb.row(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['assign']} " + _("action_handover", language),
                callback_data=f"agent:handover:{ticket.id}"
            ))
        elif role == UserRole.ADMIN and not ticket.is_closed:
            kb.row(InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['assign']} " + _("action_assign", language),
                callback_data=f"admin:assign:{ticket.id}"
            ))

        if check_rating(actor, ticket, MAX_RATING):
            kb.row(*[
                InlineKeyboardButton(text=f"{value}⭐", callback_data=f"ticket:rate:{ticket.id}:{value}")
                for value in range(MIN_RATING, MAX_RATING + 1)
            ])

        kb.row(InlineKeyboardButton(text=_("action_back", language), callback_data=back_callback))
        return kb.as_markup()

    @staticmethod
    def edit_fields(ticket_id: int, language: str = None) -> InlineKeyboardMarkup:
        """Выбор поля тикета для редактирования."""
        kb = InlineKeyboardBuilder()

        for field in ("subject", "description", "priority"):
            kb.add(InlineKeyboardButton(
                text=_(f"ticket_field_{field}", language),
                callback_data=f"ticket:edit_field:{ticket_id}:{field}"
            ))
        kb.add(InlineKeyboardButton(text=_("action_back", language), callback_data=f"ticket:view:{ticket_id}"))

        kb.adjust(1)
        return kb.as_markup()

    @staticmethod
    def agents_selection(agents: List[User], action_prefix: str, ticket_id: int,
                         back_callback: str, language: str = None) -> InlineKeyboardMarkup:
        """
        Клавиатура выбора агента для назначения или передачи тикета.

        Args:
            agents: Список агентов
            action_prefix: Префикс callback данных (например "admin:assign_to")
            ticket_id: ID тикета
            back_callback: Callback для кнопки "Назад"
            language: Язык пользователя
        """
        kb = InlineKeyboardBuilder()

        for agent in agents:
            kb.add(InlineKeyboardButton(
                text=f"🔑 {agent.display_name}",
                callback_data=f"{action_prefix}:{ticket_id}:{agent.id}"
            ))

        kb.add(InlineKeyboardButton(text=_("action_back", language), callback_data=back_callback))
        kb.adjust(1)
        return kb.as_markup()

    @staticmethod
    def admin_filters(language: str = None) -> List[List[InlineKeyboardButton]]:
        """Ряды кнопок фильтров и сортировки для списка всех тикетов."""
        status_row = [InlineKeyboardButton(text="✳️", callback_data="admin:filter:all")]
        status_row += [
            InlineKeyboardButton(text=TICKET_STATUS_EMOJI[status], callback_data=f"admin:filter:{status.name}")
            for status in TicketStatus
        ]
        sort_row = [
            InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['sort']} " + _(f"sort_{key.value}", language),
                callback_data=f"admin:sort:{key.value}"
            )
            for key in SortKey
        ]
        search_row = [
            InlineKeyboardButton(
                text=f"{KEYBOARD_EMOJI['search']} " + _("action_search", language),
                callback_data="admin:search"
            ),
            InlineKeyboardButton(text=_("action_unassigned", language), callback_data="admin:filter:unassigned"),
        ]
        return [status_row, sort_row[:2], sort_row[2:], search_row]

    @staticmethod
    def back_button(callback_data: str = "menu:main", language: str = None) -> InlineKeyboardMarkup:
        """
        Создает клавиатуру только с кнопкой "Назад".
        """
        kb = InlineKeyboardBuilder()
        kb.add(InlineKeyboardButton(text=_("action_back", language), callback_data=callback_data))
        return kb.as_markup()

    @staticmethod
    def paginated_list(
            items: List[Dict[str, Any]],
            current_page: int,
            page_size: int = 5,
            action_prefix: str = "ticket:view",
            back_callback: str = "menu:main",
            extra_rows: List[List[InlineKeyboardButton]] = None,
            language: str = None
    ) -> InlineKeyboardMarkup:
        """
        Создает клавиатуру со списком элементов и кнопками пагинации.

        Args:
            items: Список элементов для отображения (словари с ключами id и text)
            current_page: Текущая страница (начиная с 0)
            page_size: Количество элементов на странице
            action_prefix: Префикс для callback данных
            back_callback: Callback данные для кнопки "Назад"
            extra_rows: Дополнительные ряды кнопок над навигацией
            language: Язык пользователя

        Returns:
            InlineKeyboardMarkup: Клавиатура со списком и пагинацией
        """
        kb = InlineKeyboardBuilder()

        total_pages = (len(items) + page_size - 1) // page_size if items else 0
        start_idx = current_page * page_size

        for item in items[start_idx:start_idx + page_size]:
            kb.row(InlineKeyboardButton(
                text=item.get("text", f"#{item['id']}"),
                callback_data=f"{action_prefix}:{item['id']}"
            ))

        for row in extra_rows or []:
            kb.row(*row)

        row = []
        if current_page > 0:
            row.append(InlineKeyboardButton(text="◀️", callback_data=f"page:{current_page - 1}"))

        row.append(InlineKeyboardButton(text=_("action_back", language), callback_data=back_callback))

        if current_page < total_pages - 1:
            row.append(InlineKeyboardButton(text="▶️", callback_data=f"page:{current_page + 1}"))

        kb.row(*row)
        return kb.as_markup()

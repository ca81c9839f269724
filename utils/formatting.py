from datetime import datetime
from typing import Optional

from aiogram.utils.text_decorations import html_decoration

from models import Ticket, TicketPriority, TicketStatus
from rules.analytics import DashboardStats
from utils.emoji import RATING_EMOJI, TICKET_PRIORITY_EMOJI, TICKET_STATUS_EMOJI
from utils.i18n import _

DATE_FORMAT = "%d.%m.%Y %H:%M"
FILE_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_date(value: Optional[datetime]) -> str:
    return value.strftime(DATE_FORMAT) if value else "—"


def format_file_size(size: int) -> str:
    """
    Человекочитаемый размер файла: 0 Bytes, 1.5 KB, 2 MB.

    Args:
        size: Размер в байтах

    Returns:
        str: Отформатированная строка
    """
    if not size or size <= 0:
        return "0 Bytes"

    index = 0
    value = float(size)
    while value >= 1024 and index < len(FILE_SIZE_UNITS) - 1:
        value /= 1024
        index += 1

    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {FILE_SIZE_UNITS[index]}"


def ticket_button_text(ticket: Ticket) -> str:
    """Короткая подпись тикета для кнопки в списке."""
    subject = ticket.subject if len(ticket.subject) <= 40 else ticket.subject[:37] + "..."
    return (
        f"{TICKET_STATUS_EMOJI.get(ticket.status, '⚪')}"
        f"{TICKET_PRIORITY_EMOJI.get(ticket.priority, '')} #{ticket.id} {subject}"
    )


def format_ticket_card(ticket: Ticket, language: str = None, max_comments: int = 10) -> str:
    """
    Карточка тикета: основные поля, вложения и последние комментарии.

    Args:
        ticket: Тикет с загруженными автором, исполнителем, комментариями и вложениями
        language: Язык пользователя
        max_comments: Сколько последних комментариев показать

    Returns:
        str: HTML-текст карточки
    """
    quote = html_decoration.quote
    lines = [
        f"{TICKET_STATUS_EMOJI.get(ticket.status, '⚪')} <b>#{ticket.id} {quote(ticket.subject)}</b>",
        "",
        _("ticket_field_status", language) + ": " + _(f"status_{ticket.status.value}", language),
        _("ticket_field_priority", language) + ": "
        + f"{TICKET_PRIORITY_EMOJI.get(ticket.priority, '')} " + _(f"priority_{ticket.priority.value}", language),
        _("ticket_field_owner", language) + ": " + quote(ticket.owner.display_name if ticket.owner else "—"),
        _("ticket_field_assignee", language) + ": "
        + (quote(ticket.assignee.display_name) if ticket.assignee else _("ticket_unassigned", language)),
        _("ticket_field_created", language) + ": " + format_date(ticket.created_at),
    ]

    if ticket.category:
        lines.append(_("ticket_field_category", language) + ": " + quote(ticket.category))
    if ticket.rating is not None:
        lines.append(_("ticket_field_rating", language) + ": " + RATING_EMOJI * int(ticket.rating))

    lines += ["", quote(ticket.description or "")]

    if ticket.attachments:
        lines += ["", "📎 <b>" + _("ticket_attachments", language) + "</b>"]
        for attachment in ticket.attachments:
            lines.append(f"• {quote(attachment.filename)} ({format_file_size(attachment.size)})")

    if ticket.comments:
        comments = ticket.comments[-max_comments:]
        lines += ["", "💬 <b>" + _("ticket_comments", language, count=len(ticket.comments)) + "</b>"]
        for comment in comments:
            author = comment.author.display_name if comment.author else "—"
            lines.append(f"<b>{quote(author)}</b> [{format_date(comment.created_at)}]:\n{quote(comment.content)}")

    return "\n".join(lines)


def format_stats(stats: DashboardStats, language: str = None) -> str:
    """Текстовое представление статистики для панели администратора или агента."""
    lines = [
        "📊 <b>" + _("stats_title", language) + "</b>",
        "",
        _("stats_total", language, count=stats.total_tickets),
    ]

    for status in TicketStatus:
        lines.append(
            f"{TICKET_STATUS_EMOJI[status]} " + _(f"status_{status.value}", language)
            + f": {stats.tickets_by_status.get(status, 0)}"
        )

    lines.append("")
    for priority in TicketPriority:
        lines.append(
            f"{TICKET_PRIORITY_EMOJI[priority]} " + _(f"priority_{priority.value}", language)
            + f": {stats.tickets_by_priority.get(priority, 0)}"
        )

    lines += [
        "",
        _("stats_unassigned", language, count=stats.unassigned_tickets),
        _("stats_resolution_rate", language, rate=f"{stats.resolution_rate:.1f}"),
    ]

    if stats.average_resolution_hours is not None:
        lines.append(_("stats_resolution_time", language, hours=f"{stats.average_resolution_hours:.1f}"))
    if stats.average_rating is not None:
        lines.append(_("stats_average_rating", language, rating=f"{stats.average_rating:.2f}"))
    if stats.total_users is not None:
        lines.append(_("stats_users", language, users=stats.total_users, agents=stats.support_agents))

    return "\n".join(lines)

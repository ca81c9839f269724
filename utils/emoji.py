# emoji.py
# --------
from models import TicketPriority, TicketStatus, UserRole


TICKET_STATUS_EMOJI = {
    TicketStatus.OPEN: "🔵",
    TicketStatus.IN_PROGRESS: "🟡",
    TicketStatus.RESOLVED: "🟢",
    TicketStatus.CLOSED: "⚫"
}

TICKET_PRIORITY_EMOJI = {
    TicketPriority.LOW: "▫️",
    TicketPriority.MEDIUM: "🔸",
    TicketPriority.HIGH: "🔶",
    TicketPriority.URGENT: "🔴"
}

USER_ROLE_EMOJI = {
    UserRole.USER: "👤",
    UserRole.AGENT: "🔑",
    UserRole.ADMIN: "👑"
}

RATING_EMOJI = "⭐"

KEYBOARD_EMOJI = {
    "back": "🔙",
    "create": "✏️",
    "edit": "📝",
    "tickets": "📋",
    "queue": "📨",
    "comment": "💬",
    "assign": "👥",
    "stats": "📊",
    "users": "🧑‍🤝‍🧑",
    "search": "🔍",
    "sort": "↕️",
    "language": "🌐",
    "unknown": "⚪"
}

# __init__.py
# -----------
from models.user import User, UserRole
from models.ticket import Ticket, TicketStatus, TicketPriority
from models.comment import Comment
from models.attachment import Attachment

__all__ = [
    'User', 'UserRole',
    'Ticket', 'TicketStatus', 'TicketPriority',
    'Comment',
    'Attachment',
]

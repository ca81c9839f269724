# __init__.py
# -----------
from services.users import (
    get_user_by_telegram_id, get_or_create_user, fetch_users, set_language, set_user_role,
    release_assigned_tickets, set_user_active
)
from services.tickets import (
    fetch_ticket, fetch_tickets, create_ticket,
    persist_transition, persist_assignment, persist_comment, persist_attachment,
    transition_ticket, assign_ticket, add_comment, add_attachment, rate_ticket, update_ticket
)

__all__ = [
    'get_user_by_telegram_id', 'get_or_create_user', 'fetch_users', 'set_language', 'set_user_role',
    'release_assigned_tickets', 'set_user_active',
    'fetch_ticket', 'fetch_tickets', 'create_ticket',
    'persist_transition', 'persist_assignment', 'persist_comment', 'persist_attachment',
    'transition_ticket', 'assign_ticket', 'add_comment', 'add_attachment', 'rate_ticket', 'update_ticket',
]

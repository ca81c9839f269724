# __init__.py
# -----------
from utils.i18n import I18nManager, setup_i18n, get_i18n, denial_text
from utils.keyboards import KeyboardFactory
from utils.states import UserStates, TicketStates, AgentStates, AdminStates
from utils.paginator import Paginator
from utils.emoji import (
    TICKET_STATUS_EMOJI, TICKET_PRIORITY_EMOJI, USER_ROLE_EMOJI, RATING_EMOJI, KEYBOARD_EMOJI
)

__all__ = [
    'I18nManager', 'setup_i18n', 'get_i18n', 'denial_text',
    'KeyboardFactory',
    'UserStates', 'TicketStates', 'AgentStates', 'AdminStates',
    'Paginator',
    'TICKET_STATUS_EMOJI', 'TICKET_PRIORITY_EMOJI', 'USER_ROLE_EMOJI', 'RATING_EMOJI', 'KEYBOARD_EMOJI'
]

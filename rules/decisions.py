import enum
from dataclasses import dataclass
from typing import Optional


class DenialReason(enum.Enum):
    """Коды причин отказа, по которым интерфейс выбирает текст сообщения"""
    UNKNOWN_ROLE = "unknown_role"
    INSUFFICIENT_ROLE = "insufficient_role"
    TICKET_NOT_FOUND = "ticket_not_found"
    USER_NOT_FOUND = "user_not_found"
    TICKET_CLOSED = "ticket_closed"
    STATUS_MISMATCH = "status_mismatch"
    TRANSITION_NOT_ALLOWED = "transition_not_allowed"
    NOT_OWNER = "not_owner"
    NOT_ASSIGNEE = "not_assignee"
    ADMIN_READ_ONLY = "admin_read_only"
    INVALID_ASSIGNEE = "invalid_assignee"
    INVALID_RATING = "invalid_rating"
    ALREADY_RATED = "already_rated"
    SELF_ROLE_CHANGE = "self_role_change"
    SELF_DEACTIVATION = "self_deactivation"


@dataclass(frozen=True)
class Decision:
    """
    Результат проверки правила.

    Ведет себя как bool, поэтому `if check_comment(...)` работает так же,
    как и проверка `can_comment(...)`. При отказе reason содержит код причины.
    """
    allowed: bool
    reason: Optional[DenialReason] = None

    def __bool__(self):
        return self.allowed

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "Decision":
        return cls(False, reason)


ALLOWED = Decision.allow()


class RuleError(Exception):
    """Базовое исключение для операций, которые не могут вернуть Decision"""

    def __init__(self, reason: DenialReason, message: str = None):
        self.reason = reason
        super().__init__(message or reason.value)


class InvalidAssigneeError(RuleError):
    """Исполнителем тикета может быть только агент"""

    def __init__(self, message: str = None):
        super().__init__(DenialReason.INVALID_ASSIGNEE, message)


class TicketClosedError(RuleError):
    """Закрытый тикет нельзя изменять"""

    def __init__(self, message: str = None):
        super().__init__(DenialReason.TICKET_CLOSED, message)

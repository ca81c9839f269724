import enum
import logging
from typing import Any, FrozenSet, List, Optional, Set

from models import TicketStatus, UserRole
from rules.decisions import (
    ALLOWED, Decision, DenialReason, InvalidAssigneeError, TicketClosedError
)
from rules.roles import normalize_role

logger = logging.getLogger(__name__)


class Party(enum.Enum):
    """Отношение пользователя к конкретному тикету"""
    ADMIN = "admin"  # Любой администратор
    ASSIGNEE = "assignee"  # Агент, назначенный на тикет
    OWNER = "owner"  # Пользователь, создавший тикет


# Разрешенные переходы статусов и кто может их выполнять.
# Все, чего нет в таблице, запрещено.
TRANSITIONS = {
    (TicketStatus.OPEN, TicketStatus.IN_PROGRESS): frozenset({Party.ASSIGNEE, Party.ADMIN}),
    (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED): frozenset({Party.ASSIGNEE, Party.ADMIN}),
    (TicketStatus.RESOLVED, TicketStatus.CLOSED): frozenset({Party.ASSIGNEE, Party.ADMIN, Party.OWNER}),
    (TicketStatus.OPEN, TicketStatus.CLOSED): frozenset({Party.ADMIN}),
    (TicketStatus.IN_PROGRESS, TicketStatus.CLOSED): frozenset({Party.ADMIN}),
}

MIN_RATING = 1
MAX_RATING = 5


def normalize_status(value: Any) -> Optional[TicketStatus]:
    """Приводит статус ("OPEN", "open", TicketStatus.OPEN) к TicketStatus или None."""
    if isinstance(value, TicketStatus):
        return value
    if not isinstance(value, str):
        return None
    return TicketStatus.__members__.get(value.strip().upper())


def parties(actor, ticket) -> Set[Party]:
    """
    Определяет, в каком качестве actor связан с тикетом.

    Агент считается исполнителем только если назначен на тикет,
    пользователь считается автором только если создал тикет.
    """
    role = normalize_role(actor.role)
    result = set()

    if role == UserRole.ADMIN:
        result.add(Party.ADMIN)
    elif role == UserRole.AGENT:
        if ticket.assignee_id is not None and ticket.assignee_id == actor.id:
            result.add(Party.ASSIGNEE)
    elif role == UserRole.USER:
        if ticket.owner_id == actor.id:
            result.add(Party.OWNER)

    return result


def _missing_party_reason(actor) -> DenialReason:
    role = normalize_role(actor.role)
    if role == UserRole.AGENT:
        return DenialReason.NOT_ASSIGNEE
    if role == UserRole.USER:
        return DenialReason.NOT_OWNER
    return DenialReason.INSUFFICIENT_ROLE


def check_transition(actor, ticket, from_status: Any, to_status: Any) -> Decision:
    """
    Проверяет, может ли actor перевести тикет из from_status в to_status.

    Проверка всегда должна выполняться над свежей копией тикета:
    если from_status не совпадает с текущим статусом, переход отклоняется.

    Args:
        actor: Пользователь, выполняющий действие
        ticket: Тикет
        from_status: Статус, из которого выполняется переход
        to_status: Целевой статус

    Returns:
        Decision: Результат проверки с причиной отказа
    """
    if normalize_role(actor.role) is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)

    source = normalize_status(from_status)
    target = normalize_status(to_status)

    # Из закрытого состояния переходов нет ни для кого, включая администратора
    if source == TicketStatus.CLOSED or ticket.status == TicketStatus.CLOSED:
        return Decision.deny(DenialReason.TICKET_CLOSED)
    if source is None or target is None:
        return Decision.deny(DenialReason.TRANSITION_NOT_ALLOWED)
    if ticket.status != source:
        return Decision.deny(DenialReason.STATUS_MISMATCH)

    allowed_parties: Optional[FrozenSet[Party]] = TRANSITIONS.get((source, target))
    if allowed_parties is None:
        return Decision.deny(DenialReason.TRANSITION_NOT_ALLOWED)

    if parties(actor, ticket) & allowed_parties:
        return ALLOWED

    # Роль подходит, но нет нужной связи с тикетом
    role = normalize_role(actor.role)
    if role == UserRole.AGENT and Party.ASSIGNEE in allowed_parties:
        reason = DenialReason.NOT_ASSIGNEE
    elif role == UserRole.USER and Party.OWNER in allowed_parties:
        reason = DenialReason.NOT_OWNER
    else:
        reason = DenialReason.INSUFFICIENT_ROLE

    logger.debug(f"Transition {source.value} -> {target.value} denied for user {actor.id}: {reason.value}")
    return Decision.deny(reason)


def can_transition(actor, ticket, from_status: Any, to_status: Any) -> bool:
    """Булева версия check_transition."""
    return check_transition(actor, ticket, from_status, to_status).allowed


def available_transitions(actor, ticket) -> List[TicketStatus]:
    """
    Список статусов, в которые actor может перевести тикет прямо сейчас.
    Используется для построения кнопок действий.
    """
    return [
        target
        for (source, target) in TRANSITIONS
        if source == ticket.status and can_transition(actor, ticket, source, target)
    ]


def check_edit(actor, ticket) -> Decision:
    """Редактировать поля могут администратор, исполнитель и автор, пока тикет не закрыт."""
    if normalize_role(actor.role) is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if ticket.status == TicketStatus.CLOSED:
        return Decision.deny(DenialReason.TICKET_CLOSED)
    if not parties(actor, ticket):
        return Decision.deny(_missing_party_reason(actor))
    return ALLOWED


def can_edit(actor, ticket) -> bool:
    return check_edit(actor, ticket).allowed


def can_view(actor, ticket) -> bool:
    """
    Видимость тикета: администратор видит все, агент свои и неназначенные,
    пользователь только свои.
    """
    role = normalize_role(actor.role)
    if role == UserRole.ADMIN:
        return True
    if role == UserRole.AGENT:
        return ticket.assignee_id is None or ticket.assignee_id == actor.id
    if role == UserRole.USER:
        return ticket.owner_id == actor.id
    return False


def check_assignment(actor, ticket, candidate) -> Decision:
    """
    Проверяет, может ли actor назначить candidate исполнителем тикета.

    Администратор назначает любого агента. Агент может взять неназначенный
    тикет себе или передать свой тикет другому агенту.

    Args:
        actor: Пользователь, выполняющий назначение
        ticket: Тикет
        candidate: Будущий исполнитель

    Returns:
        Decision: Результат проверки
    """
    if candidate is None or normalize_role(candidate.role) != UserRole.AGENT:
        return Decision.deny(DenialReason.INVALID_ASSIGNEE)
    if ticket.status == TicketStatus.CLOSED:
        return Decision.deny(DenialReason.TICKET_CLOSED)

    role = normalize_role(actor.role)
    if role is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if role == UserRole.ADMIN:
        return ALLOWED
    if role == UserRole.AGENT:
        if ticket.assignee_id is None and candidate.id == actor.id:
            return ALLOWED
        if ticket.assignee_id == actor.id:
            return ALLOWED
        return Decision.deny(DenialReason.NOT_ASSIGNEE)
    return Decision.deny(DenialReason.INSUFFICIENT_ROLE)


def assign(ticket, candidate):
    """
    Назначает исполнителя тикета.

    Изменяет переданный объект на месте: сервисы передают сюда ORM-объект
    и сохраняют его в той же сессии. Меняются только assignee_id и assignee.
    При ошибке тикет остается нетронутым.

    Args:
        ticket: Тикет
        candidate: Агент, который станет исполнителем

    Returns:
        Ticket: Тот же объект тикета с новым исполнителем

    Raises:
        InvalidAssigneeError: Если candidate не агент
        TicketClosedError: Если тикет закрыт
    """
    if candidate is None or normalize_role(candidate.role) != UserRole.AGENT:
        raise InvalidAssigneeError(f"User {getattr(candidate, 'id', None)} is not an agent")
    if ticket.status == TicketStatus.CLOSED:
        raise TicketClosedError(f"Ticket #{ticket.id} is closed")

    ticket.assignee_id = candidate.id
    ticket.assignee = candidate
    return ticket


def check_rating(actor, ticket, rating: Any) -> Decision:
    """
    Оценить решенный тикет может только его автор, один раз, от 1 до 5.
    Оценка закрывает тикет.
    """
    if normalize_role(actor.role) is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if ticket.status == TicketStatus.CLOSED:
        return Decision.deny(DenialReason.TICKET_CLOSED)
    if Party.OWNER not in parties(actor, ticket):
        return Decision.deny(DenialReason.NOT_OWNER)
    if ticket.rating is not None:
        return Decision.deny(DenialReason.ALREADY_RATED)
    if ticket.status != TicketStatus.RESOLVED:
        return Decision.deny(DenialReason.TRANSITION_NOT_ALLOWED)
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        return Decision.deny(DenialReason.INVALID_RATING)
    return ALLOWED

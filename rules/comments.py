from models import TicketStatus, UserRole
from rules.decisions import ALLOWED, Decision, DenialReason
from rules.lifecycle import Party, parties
from rules.roles import normalize_role


def check_comment(actor, ticket) -> Decision:
    """
    Проверяет, может ли actor добавить комментарий к тикету.

    Администратор только читает комментарии. Агент пишет в назначенные ему
    тикеты, пользователь в свои. В закрытый тикет не пишет никто.

    Args:
        actor: Пользователь
        ticket: Тикет

    Returns:
        Decision: Результат проверки с причиной отказа
    """
    role = normalize_role(actor.role)
    if role is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if role == UserRole.ADMIN:
        return Decision.deny(DenialReason.ADMIN_READ_ONLY)
    if ticket.status == TicketStatus.CLOSED:
        return Decision.deny(DenialReason.TICKET_CLOSED)

    actor_parties = parties(actor, ticket)
    if role == UserRole.AGENT and Party.ASSIGNEE not in actor_parties:
        return Decision.deny(DenialReason.NOT_ASSIGNEE)
    if role == UserRole.USER and Party.OWNER not in actor_parties:
        return Decision.deny(DenialReason.NOT_OWNER)
    return ALLOWED


def can_comment(actor, ticket) -> bool:
    return check_comment(actor, ticket).allowed


# Вложения подчиняются тем же ограничениям, что и комментарии
check_attachment = check_comment

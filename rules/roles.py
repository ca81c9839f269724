import logging
from typing import Any, Optional

from models import UserRole
from rules.decisions import ALLOWED, Decision, DenialReason

logger = logging.getLogger(__name__)

# Ранги ролей: чем больше, тем больше прав
ROLE_RANKS = {
    UserRole.USER: 1,
    UserRole.AGENT: 2,
    UserRole.ADMIN: 3,
}


def normalize_role(value: Any) -> Optional[UserRole]:
    """
    Приводит внешнее представление роли к UserRole.

    Понимает сам UserRole, строки вида "ROLE_ADMIN", "admin", "ADMIN",
    а также словари и объекты с полем name (например {"name": "ROLE_AGENT"}).

    Args:
        value: Роль в любом из поддерживаемых форматов

    Returns:
        Optional[UserRole]: Роль или None, если значение не распознано
    """
    if isinstance(value, UserRole):
        return value

    if isinstance(value, dict):
        value = value.get("name")
    elif value is not None and not isinstance(value, str):
        value = getattr(value, "name", None)

    if not isinstance(value, str):
        return None

    name = value.strip().upper()
    if name.startswith("ROLE_"):
        name = name[len("ROLE_"):]

    return UserRole.__members__.get(name)


def role_rank(role: Any) -> int:
    """Ранг роли; для нераспознанной роли 0."""
    normalized = normalize_role(role)
    if normalized is None:
        return 0
    return ROLE_RANKS[normalized]


def has_at_least_role(actual_role: Any, required_role: Any) -> bool:
    """
    Проверяет, что роль не ниже требуемой.

    Args:
        actual_role: Роль пользователя
        required_role: Минимально необходимая роль

    Returns:
        bool: True, если rank(actual_role) >= rank(required_role).
            Для нераспознанной actual_role всегда False.
    """
    actual_rank = role_rank(actual_role)
    if actual_rank == 0:
        return False
    return actual_rank >= role_rank(required_role)


def check_role_change(actor, target, new_role: Any) -> Decision:
    """
    Проверяет, может ли actor назначить пользователю target новую роль.

    Менять роли может только администратор, и не себе самому.

    Args:
        actor: Пользователь, выполняющий действие
        target: Пользователь, роль которого меняется
        new_role: Новая роль

    Returns:
        Decision: Результат проверки
    """
    actor_role = normalize_role(actor.role)
    if actor_role is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if actor_role != UserRole.ADMIN:
        return Decision.deny(DenialReason.INSUFFICIENT_ROLE)
    if target is None:
        return Decision.deny(DenialReason.USER_NOT_FOUND)
    if normalize_role(new_role) is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if target.id == actor.id:
        logger.debug(f"Admin {actor.id} tried to change own role")
        return Decision.deny(DenialReason.SELF_ROLE_CHANGE)
    return ALLOWED


def check_activation_change(actor, target) -> Decision:
    """
    Проверяет, может ли actor заблокировать или разблокировать пользователя target.
    Как и смена роли, доступно только администратору и не в отношении себя.
    """
    actor_role = normalize_role(actor.role)
    if actor_role is None:
        return Decision.deny(DenialReason.UNKNOWN_ROLE)
    if actor_role != UserRole.ADMIN:
        return Decision.deny(DenialReason.INSUFFICIENT_ROLE)
    if target is None:
        return Decision.deny(DenialReason.USER_NOT_FOUND)
    if target.id == actor.id:
        return Decision.deny(DenialReason.SELF_DEACTIVATION)
    return ALLOWED

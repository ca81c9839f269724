import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Ticket, TicketStatus, User, UserRole
from rules.decisions import Decision, DenialReason
from rules.roles import check_activation_change, check_role_change, normalize_role

logger = logging.getLogger(__name__)


async def get_user_by_telegram_id(session: AsyncSession, telegram_id: int) -> Optional[User]:
    query = select(User).where(User.telegram_id == telegram_id).execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_user(
        session: AsyncSession,
        telegram_id: int,
        name: str = None,
        admin_ids: Iterable[int] = ()
) -> Tuple[User, bool]:
    """
    Возвращает пользователя по telegram_id, при необходимости регистрирует его.

    Пользователи из списка ADMIN_IDS получают роль администратора
    при первой регистрации.

    Args:
        session: Сессия БД
        telegram_id: Telegram ID пользователя
        name: Имя для отображения
        admin_ids: Telegram ID администраторов из конфигурации

    Returns:
        Tuple[User, bool]: Пользователь и признак того, что он только что создан
    """
    user = await get_user_by_telegram_id(session, telegram_id)
    if user:
        return user, False

    role = UserRole.ADMIN if telegram_id in set(admin_ids) else UserRole.USER
    user = User(telegram_id=telegram_id, name=name, role=role)
    session.add(user)
    await session.commit()

    logger.info(f"Registered user {telegram_id} with role {role.value}")
    return user, True


async def fetch_users(session: AsyncSession, role: UserRole = None) -> List[User]:
    query = select(User).order_by(User.id)
    if role is not None:
        query = query.where(User.role == role)
    result = await session.execute(query)
    return list(result.scalars().all())


async def set_language(session: AsyncSession, user: User, language: str) -> User:
    user.language = language
    await session.commit()
    return user


async def release_assigned_tickets(session: AsyncSession, user: User) -> List[Ticket]:
    """
    Снимает пользователя со всех незакрытых тикетов, они возвращаются в очередь
    в своем текущем статусе. Коммит выполняет вызывающий код.
    """
    query = select(Ticket).where(
        (Ticket.assignee_id == user.id) &
        (Ticket.status != TicketStatus.CLOSED)
    )
    result = await session.execute(query)
    released = list(result.scalars().all())
    for ticket in released:
        ticket.assignee_id = None
    if released:
        logger.info(f"Released {len(released)} tickets from user {user.id}")
    return released


async def set_user_role(
        session: AsyncSession,
        actor: User,
        user_id: int,
        new_role
) -> Tuple[Decision, Optional[User]]:
    """
    Меняет роль пользователя.

    При снятии роли агента он снимается со всех незакрытых тикетов,
    они возвращаются в очередь.

    Args:
        session: Сессия БД
        actor: Администратор, выполняющий действие
        user_id: ID пользователя
        new_role: Новая роль в любом поддерживаемом формате

    Returns:
        Tuple[Decision, Optional[User]]: Результат проверки и пользователь
    """
    target = await session.get(User, user_id, populate_existing=True)
    if target is None:
        return Decision.deny(DenialReason.USER_NOT_FOUND), None

    decision = check_role_change(actor, target, new_role)
    if not decision:
        return decision, target

    role = normalize_role(new_role)
    old_role = target.role

    if old_role == UserRole.AGENT and role != UserRole.AGENT:
        await release_assigned_tickets(session, target)

    target.role = role
    await session.commit()

    logger.info(f"Admin {actor.id} changed role of user {target.id}: {old_role.value} -> {role.value}")
    return decision, target


async def set_user_active(
        session: AsyncSession,
        actor: User,
        user_id: int,
        active: bool
) -> Tuple[Decision, Optional[User], List[Ticket]]:
    """
    Блокирует или разблокирует пользователя.

    Заблокированный пользователь снимается со всех незакрытых тикетов.
    Его собственные тикеты остаются в системе.

    Args:
        session: Сессия БД
        actor: Администратор, выполняющий действие
        user_id: ID пользователя
        active: False, чтобы заблокировать, True, чтобы разблокировать

    Returns:
        Tuple[Decision, Optional[User], List[Ticket]]: Результат проверки,
            пользователь и тикеты, возвращенные в очередь
    """
    target = await session.get(User, user_id, populate_existing=True)
    if target is None:
        return Decision.deny(DenialReason.USER_NOT_FOUND), None, []

    decision = check_activation_change(actor, target)
    if not decision:
        return decision, target, []

    released = [] if active else await release_assigned_tickets(session, target)
    target.is_active = active
    await session.commit()

    logger.info(f"Admin {actor.id} {'unblocked' if active else 'blocked'} user {target.id}")
    return decision, target, released

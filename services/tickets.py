import logging
from typing import List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Attachment, Comment, Ticket, TicketPriority, TicketStatus, User
from rules.comments import check_attachment, check_comment
from rules.decisions import Decision, DenialReason
from rules.lifecycle import (
    assign, check_assignment, check_edit, check_rating, check_transition, normalize_status
)

logger = logging.getLogger(__name__)

# Поля, которые можно менять через update_ticket
EDITABLE_FIELDS = ("subject", "description", "priority", "category")


def _ticket_query():
    return select(Ticket).options(
        selectinload(Ticket.owner),
        selectinload(Ticket.assignee),
        selectinload(Ticket.comments).selectinload(Comment.author),
        selectinload(Ticket.attachments),
    )


async def fetch_ticket(session: AsyncSession, ticket_id: int) -> Optional[Ticket]:
    """
    Загружает тикет из БД.

    Объект всегда перечитывается из базы, даже если он уже есть в сессии,
    чтобы проверки прав выполнялись по актуальному состоянию.

    Args:
        session: Сессия БД
        ticket_id: ID тикета

    Returns:
        Optional[Ticket]: Тикет или None
    """
    query = _ticket_query().where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def fetch_tickets(
        session: AsyncSession,
        owner_id: int = None,
        assignee_id: int = None,
        status: TicketStatus = None,
        unassigned: bool = False,
        exclude_closed: bool = False
) -> List[Ticket]:
    """
    Загружает список тикетов с простыми фильтрами на стороне БД.
    exclude_closed убирает из выборки закрытые тикеты.
    Поиск и сортировка выполняются через rules.query.filter_and_sort.
    """
    query = _ticket_query().order_by(Ticket.id).execution_options(populate_existing=True)
    if owner_id is not None:
        query = query.where(Ticket.owner_id == owner_id)
    if assignee_id is not None:
        query = query.where(Ticket.assignee_id == assignee_id)
    if unassigned:
        query = query.where(Ticket.assignee_id.is_(None))
    if status is not None:
        query = query.where(Ticket.status == status)
    if exclude_closed:
        query = query.where(Ticket.status != TicketStatus.CLOSED)

    result = await session.execute(query)
    return list(result.scalars().all())


async def create_ticket(
        session: AsyncSession,
        owner: User,
        subject: str,
        description: str,
        priority: TicketPriority = TicketPriority.MEDIUM,
        category: str = None
) -> Ticket:
    """
    Создает тикет в статусе OPEN.

    Args:
        session: Сессия БД
        owner: Автор тикета
        subject: Тема
        description: Описание
        priority: Приоритет
        category: Категория (опционально)

    Returns:
        Ticket: Созданный тикет
    """
    ticket = Ticket(
        owner_id=owner.id,
        subject=subject[:255],
        description=description,
        status=TicketStatus.OPEN,
        priority=priority,
        category=category,
    )
    session.add(ticket)
    await session.commit()

    logger.info(f"User {owner.id} created ticket #{ticket.id}")
    return await fetch_ticket(session, ticket.id)


async def persist_transition(session: AsyncSession, ticket: Ticket, new_status: TicketStatus) -> Ticket:
    ticket.set_status(new_status)
    await session.commit()
    logger.info(f"Ticket #{ticket.id} moved to {new_status.value}")
    return ticket


async def persist_assignment(session: AsyncSession, ticket: Ticket, assignee: User) -> Ticket:
    assign(ticket, assignee)
    await session.commit()
    logger.info(f"Ticket #{ticket.id} assigned to user {assignee.id}")
    return ticket


async def persist_comment(session: AsyncSession, ticket: Ticket, author: User, content: str) -> Comment:
    comment = Comment(ticket_id=ticket.id, author_id=author.id, content=content)
    comment.author = author
    session.add(comment)
    await session.commit()
    logger.info(f"User {author.id} commented on ticket #{ticket.id}")
    return comment


async def persist_attachment(
        session: AsyncSession,
        ticket: Ticket,
        uploader: User,
        file_id: str,
        filename: str,
        size: int = 0,
        mime_type: str = None,
        original_name: str = None
) -> Attachment:
    attachment = Attachment(
        ticket_id=ticket.id,
        uploaded_by=uploader.id,
        file_id=file_id,
        filename=filename,
        original_name=original_name or filename,
        mime_type=mime_type,
        size=size or 0,
    )
    session.add(attachment)
    await session.commit()
    logger.info(f"User {uploader.id} attached {filename} to ticket #{ticket.id}")
    return attachment


async def transition_ticket(
        session: AsyncSession,
        actor: User,
        ticket_id: int,
        to_status: Union[TicketStatus, str],
        from_status: Union[TicketStatus, str, None] = None
) -> Tuple[Decision, Optional[Ticket]]:
    """
    Меняет статус тикета, если это разрешено.

    Тикет перечитывается из БД непосредственно перед проверкой. Если передан
    from_status (статус, который видел пользователь), а тикет с тех пор
    изменился, переход отклоняется. Переданный, но нераспознанный
    from_status тоже считается устаревшим снимком.

    Args:
        session: Сессия БД
        actor: Пользователь, выполняющий действие
        ticket_id: ID тикета
        to_status: Целевой статус
        from_status: Ожидаемый текущий статус

    Returns:
        Tuple[Decision, Optional[Ticket]]: Результат проверки и тикет
    """
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        return Decision.deny(DenialReason.TICKET_NOT_FOUND), None

    if from_status is None:
        from_status = ticket.status
    elif normalize_status(from_status) is None:
        logger.info(f"User {actor.id} sent unknown status snapshot {from_status!r} for ticket #{ticket_id}")
        return Decision.deny(DenialReason.STATUS_MISMATCH), ticket

    decision = check_transition(actor, ticket, from_status, to_status)
    if not decision:
        logger.info(f"User {actor.id} denied transition of ticket #{ticket_id}: {decision.reason.value}")
        return decision, ticket

    return decision, await persist_transition(session, ticket, normalize_status(to_status))


async def assign_ticket(
        session: AsyncSession,
        actor: User,
        ticket_id: int,
        assignee_id: int
) -> Tuple[Decision, Optional[Ticket]]:
    """Назначает исполнителя тикета после проверки прав."""
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        return Decision.deny(DenialReason.TICKET_NOT_FOUND), None

    candidate = await session.get(User, assignee_id, populate_existing=True)
    if candidate is None:
        return Decision.deny(DenialReason.USER_NOT_FOUND), ticket

    decision = check_assignment(actor, ticket, candidate)
    if not decision:
        logger.info(f"User {actor.id} denied assignment of ticket #{ticket_id}: {decision.reason.value}")
        return decision, ticket

    return decision, await persist_assignment(session, ticket, candidate)


async def add_comment(
        session: AsyncSession,
        actor: User,
        ticket_id: int,
        content: str
) -> Tuple[Decision, Optional[Comment]]:
    """Добавляет комментарий к тикету, если actor имеет на это право."""
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        return Decision.deny(DenialReason.TICKET_NOT_FOUND), None

    decision = check_comment(actor, ticket)
    if not decision:
        return decision, None

    return decision, await persist_comment(session, ticket, actor, content)


async def add_attachment(
        session: AsyncSession,
        actor: User,
        ticket_id: int,
        file_id: str,
        filename: str,
        size: int = 0,
        mime_type: str = None
) -> Tuple[Decision, Optional[Attachment]]:
    """Сохраняет метаданные вложения, если actor может писать в тикет."""
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        return Decision.deny(DenialReason.TICKET_NOT_FOUND), None

    decision = check_attachment(actor, ticket)
    if not decision:
        return decision, None

    attachment = await persist_attachment(
        session, ticket, actor, file_id=file_id, filename=filename, size=size, mime_type=mime_type
    )
    return decision, attachment


async def rate_ticket(
        session: AsyncSession,
        actor: User,
        ticket_id: int,
        rating: int,
        feedback: str = None
) -> Tuple[Decision, Optional[Ticket]]:
    """Сохраняет оценку автора и закрывает решенный тикет."""
    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        return Decision.deny(DenialReason.TICKET_NOT_FOUND), None

    decision = check_rating(actor, ticket, rating)
    if not decision:
        return decision, ticket

    ticket.rate(rating, feedback)
    await session.commit()
    logger.info(f"User {actor.id} rated ticket #{ticket.id} with {rating}/5")
    return decision, ticket


async def update_ticket(
        session: AsyncSession,
        actor: User,
        ticket_id: int,
        **changes
) -> Tuple[Decision, Optional[Ticket]]:
    """
    Обновляет редактируемые поля тикета (тема, описание, приоритет, категория).

    Raises:
        ValueError: Если передано поле, которое нельзя редактировать
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    ticket = await fetch_ticket(session, ticket_id)
    if ticket is None:
        return Decision.deny(DenialReason.TICKET_NOT_FOUND), None

    decision = check_edit(actor, ticket)
    if not decision:
        return decision, ticket

    for name, value in changes.items():
        if value is not None:
            setattr(ticket, name, value)
    await session.commit()

    logger.info(f"User {actor.id} edited ticket #{ticket.id}: {', '.join(sorted(changes))}")
    return decision, ticket

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Optional, Union

from models import TicketPriority, TicketStatus
from rules.lifecycle import can_view, normalize_status

# Значения фильтров исполнителя и автора
ALL = "all"
UNASSIGNED = "unassigned"

PRIORITY_WEIGHTS = {
    TicketPriority.URGENT: 4,
    TicketPriority.HIGH: 3,
    TicketPriority.MEDIUM: 2,
    TicketPriority.LOW: 1,
}

STATUS_WEIGHTS = {
    TicketStatus.OPEN: 1,
    TicketStatus.IN_PROGRESS: 2,
    TicketStatus.RESOLVED: 3,
    TicketStatus.CLOSED: 4,
}


def normalize_priority(value: Any) -> Optional[TicketPriority]:
    """Приводит приоритет ("HIGH", "high", TicketPriority.HIGH) к TicketPriority или None."""
    if isinstance(value, TicketPriority):
        return value
    if not isinstance(value, str):
        return None
    return TicketPriority.__members__.get(value.strip().upper())


class SortKey(enum.Enum):
    """Поля, по которым можно сортировать список тикетов"""
    CREATED_AT = "created_at"
    PRIORITY = "priority"
    STATUS = "status"
    SUBJECT = "subject"


class SortDirection(enum.Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class TicketCriteria:
    """
    Критерии фильтрации и сортировки тикетов.

    assignee и owner принимают ALL (без фильтра), UNASSIGNED (поле пустое)
    или идентификатор пользователя.

    status и priority можно передать строкой ("OPEN", "high"). Нераспознанное
    значение сохраняется как есть и не совпадает ни с одним тикетом.
    """
    search: Optional[str] = None
    status: Union[TicketStatus, str, None] = None
    priority: Union[TicketPriority, str, None] = None
    assignee: Union[str, int, None] = ALL
    owner: Union[str, int, None] = ALL
    sort_key: SortKey = SortKey.CREATED_AT
    direction: SortDirection = SortDirection.DESC

    def __post_init__(self):
        if self.status is not None:
            object.__setattr__(self, "status", normalize_status(self.status) or self.status)
        if self.priority is not None:
            object.__setattr__(self, "priority", normalize_priority(self.priority) or self.priority)


DEFAULT_CRITERIA = TicketCriteria()


def _matches_person(value: Any, expected: Union[str, int, None]) -> bool:
    if expected is None or expected == ALL:
        return True
    if expected == UNASSIGNED:
        return value is None
    return value is not None and str(value) == str(expected)


def _matches_search(ticket, search: str) -> bool:
    needle = search.casefold()
    owner = getattr(ticket, "owner", None)
    haystacks = [
        ticket.subject,
        ticket.description,
        getattr(owner, "display_name", None),
        getattr(owner, "email", None),
    ]
    return any(text and needle in text.casefold() for text in haystacks)


def matches(ticket, criteria: TicketCriteria) -> bool:
    """Проверяет, проходит ли тикет все заданные фильтры."""
    if criteria.search and not _matches_search(ticket, criteria.search):
        return False
    if criteria.status is not None and ticket.status != criteria.status:
        return False
    if criteria.priority is not None and ticket.priority != criteria.priority:
        return False
    if not _matches_person(ticket.assignee_id, criteria.assignee):
        return False
    if not _matches_person(ticket.owner_id, criteria.owner):
        return False
    return True


def sort_value(ticket, key: SortKey):
    """Значение ключа сортировки для тикета."""
    if key == SortKey.PRIORITY:
        return PRIORITY_WEIGHTS.get(ticket.priority, 0)
    if key == SortKey.STATUS:
        return STATUS_WEIGHTS.get(ticket.status, 0)
    if key == SortKey.SUBJECT:
        return (ticket.subject or "").casefold()
    return ticket.created_at or datetime.min


class TicketSelection:
    """
    Отфильтрованный и отсортированный список тикетов.

    Вычисляется при каждом обходе заново из зафиксированного снимка входных
    данных, поэтому его можно обходить сколько угодно раз с одинаковым
    результатом.
    """

    def __init__(self, tickets: Iterable, criteria: TicketCriteria):
        self._tickets = tuple(tickets)
        self.criteria = criteria

    def __iter__(self) -> Iterator:
        selected = [ticket for ticket in self._tickets if matches(ticket, self.criteria)]
        # list.sort() стабилен и при reverse=True
        selected.sort(
            key=lambda ticket: sort_value(ticket, self.criteria.sort_key),
            reverse=self.criteria.direction == SortDirection.DESC
        )
        return iter(selected)

    def __len__(self):
        return sum(1 for ticket in self._tickets if matches(ticket, self.criteria))

    def __getitem__(self, index):
        return self.to_list()[index]

    def __bool__(self):
        return any(matches(ticket, self.criteria) for ticket in self._tickets)

    def to_list(self) -> List:
        return list(self)


def filter_and_sort(tickets: Iterable, criteria: Optional[TicketCriteria] = None) -> TicketSelection:
    """
    Фильтрует и сортирует тикеты по критериям.

    Чистая функция: одинаковые входные данные всегда дают одинаковый порядок.
    Тикеты с равным значением ключа сохраняют исходный относительный порядок.

    Args:
        tickets: Тикеты
        criteria: Критерии (по умолчанию без фильтров, по дате создания, новые первыми)

    Returns:
        TicketSelection: Ленивая перезапускаемая последовательность
    """
    return TicketSelection(tickets, criteria or DEFAULT_CRITERIA)


def visible_to(actor, tickets: Iterable) -> List:
    """Оставляет только тикеты, которые actor имеет право видеть."""
    return [ticket for ticket in tickets if can_view(actor, ticket)]

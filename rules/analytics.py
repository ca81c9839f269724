from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from models import TicketPriority, TicketStatus, UserRole
from rules.roles import normalize_role


@dataclass
class DashboardStats:
    """Сводная статистика по набору тикетов"""
    total_tickets: int = 0
    tickets_by_status: Dict[TicketStatus, int] = field(default_factory=dict)
    tickets_by_priority: Dict[TicketPriority, int] = field(default_factory=dict)
    unassigned_tickets: int = 0
    resolution_rate: float = 0.0  # Процент решенных и закрытых
    average_resolution_hours: Optional[float] = None
    average_rating: Optional[float] = None
    total_users: Optional[int] = None
    support_agents: Optional[int] = None

    @property
    def open_tickets(self) -> int:
        return self.tickets_by_status.get(TicketStatus.OPEN, 0)

    @property
    def in_progress_tickets(self) -> int:
        return self.tickets_by_status.get(TicketStatus.IN_PROGRESS, 0)

    @property
    def resolved_tickets(self) -> int:
        return self.tickets_by_status.get(TicketStatus.RESOLVED, 0)

    @property
    def closed_tickets(self) -> int:
        return self.tickets_by_status.get(TicketStatus.CLOSED, 0)


def compute_stats(tickets: Iterable, users: Optional[Iterable] = None) -> DashboardStats:
    """
    Считает статистику для панели управления.

    Args:
        tickets: Тикеты, по которым строится статистика
        users: Пользователи (если переданы, считаются общее число и число агентов)

    Returns:
        DashboardStats: Статистика
    """
    stats = DashboardStats(
        tickets_by_status={status: 0 for status in TicketStatus},
        tickets_by_priority={priority: 0 for priority in TicketPriority},
    )
    resolution_hours = []
    ratings = []

    for ticket in tickets:
        stats.total_tickets += 1
        if ticket.status in stats.tickets_by_status:
            stats.tickets_by_status[ticket.status] += 1
        if ticket.priority in stats.tickets_by_priority:
            stats.tickets_by_priority[ticket.priority] += 1
        if ticket.assignee_id is None:
            stats.unassigned_tickets += 1
        if ticket.resolved_at and ticket.created_at:
            resolution_hours.append((ticket.resolved_at - ticket.created_at).total_seconds() / 3600)
        if ticket.rating is not None:
            ratings.append(ticket.rating)

    if stats.total_tickets:
        done = stats.resolved_tickets + stats.closed_tickets
        stats.resolution_rate = done / stats.total_tickets * 100
    if resolution_hours:
        stats.average_resolution_hours = sum(resolution_hours) / len(resolution_hours)
    if ratings:
        stats.average_rating = sum(ratings) / len(ratings)

    if users is not None:
        users = list(users)
        stats.total_users = len(users)
        stats.support_agents = sum(1 for user in users if normalize_role(user.role) == UserRole.AGENT)

    return stats

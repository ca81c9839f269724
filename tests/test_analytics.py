"""
Tests for dashboard statistics.
"""

import pytest

from models import TicketPriority, TicketStatus, UserRole
from rules.analytics import compute_stats

from conftest import hours_later, make_ticket, make_user


class TestComputeStats:
    """Tests for compute_stats."""

    def test_empty_input(self):
        stats = compute_stats([])

        assert stats.total_tickets == 0
        assert stats.resolution_rate == 0.0
        assert stats.average_resolution_hours is None
        assert stats.average_rating is None
        assert stats.total_users is None
        assert all(value == 0 for value in stats.tickets_by_status.values())
        assert set(stats.tickets_by_priority) == set(TicketPriority)

    def test_counts_and_rates(self, owner, agent):
        tickets = [
            make_ticket(owner, status=TicketStatus.OPEN, priority=TicketPriority.URGENT),
            make_ticket(owner, agent, status=TicketStatus.IN_PROGRESS),
            make_ticket(owner, agent, status=TicketStatus.RESOLVED, resolved_at=hours_later(2)),
            make_ticket(owner, agent, status=TicketStatus.CLOSED, resolved_at=hours_later(4), rating=4),
        ]

        stats = compute_stats(tickets)

        assert stats.total_tickets == 4
        assert stats.open_tickets == 1
        assert stats.in_progress_tickets == 1
        assert stats.resolved_tickets == 1
        assert stats.closed_tickets == 1
        assert stats.tickets_by_priority[TicketPriority.URGENT] == 1
        assert stats.tickets_by_priority[TicketPriority.MEDIUM] == 3
        assert stats.unassigned_tickets == 1
        assert stats.resolution_rate == pytest.approx(50.0)
        assert stats.average_resolution_hours == pytest.approx(3.0)
        assert stats.average_rating == pytest.approx(4.0)

    def test_user_counts(self):
        users = [make_user(UserRole.USER), make_user(UserRole.AGENT), make_user("ROLE_AGENT"),
                 make_user(UserRole.ADMIN)]

        stats = compute_stats([], users)

        assert stats.total_users == 4
        assert stats.support_agents == 2

    def test_accepts_any_iterable(self, owner):
        stats = compute_stats(make_ticket(owner) for _ in range(3))
        assert stats.total_tickets == 3

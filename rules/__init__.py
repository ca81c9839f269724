# __init__.py
# -----------
from rules.decisions import (
    Decision, DenialReason, RuleError, InvalidAssigneeError, TicketClosedError
)
from rules.roles import (
    ROLE_RANKS, normalize_role, role_rank, has_at_least_role, check_role_change, check_activation_change
)
from rules.lifecycle import (
    TRANSITIONS, check_transition, can_transition, available_transitions,
    check_edit, can_edit, can_view, check_assignment, assign, check_rating
)
from rules.comments import check_comment, can_comment, check_attachment
from rules.query import (
    ALL, UNASSIGNED, SortKey, SortDirection, TicketCriteria, TicketSelection, normalize_priority,
    filter_and_sort, visible_to
)
from rules.analytics import DashboardStats, compute_stats

__all__ = [
    'Decision', 'DenialReason', 'RuleError', 'InvalidAssigneeError', 'TicketClosedError',
    'ROLE_RANKS', 'normalize_role', 'role_rank', 'has_at_least_role', 'check_role_change',
    'check_activation_change',
    'TRANSITIONS', 'check_transition', 'can_transition', 'available_transitions',
    'check_edit', 'can_edit', 'can_view', 'check_assignment', 'assign', 'check_rating',
    'check_comment', 'can_comment', 'check_attachment',
    'ALL', 'UNASSIGNED', 'SortKey', 'SortDirection', 'TicketCriteria', 'TicketSelection', 'normalize_priority',
    'filter_and_sort', 'visible_to',
    'DashboardStats', 'compute_stats',
]

"""
Tests for the role gate applied to the agent and admin routers.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.types import CallbackQuery, Message

from middlewares.role import RoleMiddleware
from models import UserRole
from utils.i18n import _


def make_event(cls):
    event = MagicMock(spec=cls)
    event.answer = AsyncMock()
    return event


class TestRoleMiddleware:
    """Tests for RoleMiddleware."""

    @pytest.mark.asyncio
    async def test_sufficient_role_passes(self, agent, admin):
        middleware = RoleMiddleware(UserRole.AGENT)
        handler = AsyncMock(return_value="handled")

        for actor in (agent, admin):
            result = await middleware(handler, make_event(Message), {"actor": actor, "language": "en"})
            assert result == "handled"

    @pytest.mark.asyncio
    async def test_insufficient_role_gets_explicit_message(self, owner):
        middleware = RoleMiddleware(UserRole.ADMIN)
        handler = AsyncMock()
        event = make_event(CallbackQuery)

        result = await middleware(handler, event, {"actor": owner, "language": "en"})

        assert result is None
        handler.assert_not_awaited()
        event.answer.assert_awaited_once_with(_("error_access_denied", "en"), show_alert=True)

    @pytest.mark.asyncio
    async def test_unregistered_user_is_sent_to_start(self):
        middleware = RoleMiddleware(UserRole.USER)
        handler = AsyncMock()
        event = make_event(Message)

        await middleware(handler, event, {"actor": None, "language": "en"})

        handler.assert_not_awaited()
        event.answer.assert_awaited_once_with(_("error_not_registered", "en"))

    @pytest.mark.asyncio
    async def test_unknown_role_is_denied(self, unknown):
        middleware = RoleMiddleware(UserRole.USER)
        handler = AsyncMock()

        await middleware(handler, make_event(Message), {"actor": unknown, "language": "en"})

        handler.assert_not_awaited()

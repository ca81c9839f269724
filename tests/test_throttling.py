"""
Tests for the throttling middleware.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.types import CallbackQuery

from middlewares.throttling import ThrottlingMiddleware


class TestThrottling:
    """Tests for ThrottlingMiddleware."""

    def test_second_request_within_rate_is_throttled(self):
        middleware = ThrottlingMiddleware(rate_limit=0.5)

        assert middleware.is_throttled(1, now=100.0) is False
        assert middleware.is_throttled(1, now=100.2) is True
        assert middleware.is_throttled(1, now=100.6) is False

    def test_users_are_independent(self):
        middleware = ThrottlingMiddleware(rate_limit=0.5)

        assert middleware.is_throttled(1, now=100.0) is False
        assert middleware.is_throttled(2, now=100.1) is False

    @pytest.mark.asyncio
    async def test_throttled_callback_gets_alert(self):
        middleware = ThrottlingMiddleware(rate_limit=10)
        event = MagicMock(spec=CallbackQuery)
        event.from_user = MagicMock(id=42)
        event.answer = AsyncMock()
        handler = AsyncMock(return_value="ok")

        first = await middleware(handler, event, {"language": "en"})
        second = await middleware(handler, event, {"language": "en"})

        assert first == "ok"
        assert second is None
        handler.assert_awaited_once()
        event.answer.assert_awaited_once()
        assert event.answer.await_args.kwargs["show_alert"] is True

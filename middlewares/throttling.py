import time
from typing import Dict, Any, Callable, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, TelegramObject
from cachetools import TTLCache

from middlewares.actor import event_user_id
from utils.i18n import _


class ThrottlingMiddleware(BaseMiddleware):
    """
    Middleware для защиты от спама.
    Ограничивает частоту запросов от одного пользователя.
    """

    def __init__(self, rate_limit: float = 0.5):
        """
        Args:
            rate_limit: Минимальный интервал между запросами в секундах
        """
        self.rate_limit = rate_limit
        # Записи живут ровно rate_limit секунд
        self.cache = TTLCache(maxsize=10000, ttl=rate_limit)
        super().__init__()

    def is_throttled(self, user_id: int, now: float = None) -> bool:
        """
        Проверяет, слишком ли часто пишет пользователь, и запоминает время запроса.

        Returns:
            bool: True, если запрос нужно отбросить
        """
        now = time.time() if now is None else now
        last_time = self.cache.get(user_id)
        if last_time is not None and now - last_time < self.rate_limit:
            return True

        self.cache[user_id] = now
        return False

    async def __call__(
            self,
            handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
            event: TelegramObject,
            data: Dict[str, Any]
    ) -> Any:
        user_id = event_user_id(event)
        if user_id is None:
            return await handler(event, data)

        if self.is_throttled(user_id):
            if isinstance(event, CallbackQuery):
                await event.answer(_("error_too_fast", data.get("language")), show_alert=True)
            return None

        return await handler(event, data)

from typing import Dict, Any, Callable, Awaitable, Union
import logging

from aiogram import BaseMiddleware
from aiogram.types import Message, CallbackQuery, TelegramObject

from models import UserRole
from rules.roles import has_at_least_role
from utils.i18n import _

logger = logging.getLogger(__name__)


class RoleMiddleware(BaseMiddleware):
    """
    Middleware для проверки роли пользователя.
    Пропускает к обработчикам роутера только пользователей с ролью не ниже заданной.
    Должен работать после ActorMiddleware.
    """

    def __init__(self, min_role: UserRole):
        """
        Args:
            min_role: Минимальная роль для доступа к роутеру
        """
        self.min_role = min_role
        super().__init__()

    async def __call__(
            self,
            handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
            event: Union[Message, CallbackQuery],
            data: Dict[str, Any]
    ) -> Any:
        if not isinstance(event, (Message, CallbackQuery)):
            return await handler(event, data)

        actor = data.get("actor")
        language = data.get("language")

        # Незарегистрированного пользователя отправляем на /start
        if actor is None:
            await self._deny(event, _("error_not_registered", language))
            return None

        if not has_at_least_role(actor.role, self.min_role):
            logger.info(f"User {actor.id} ({actor.role}) denied access to {self.min_role.value} section")
            await self._deny(event, _("error_access_denied", language))
            return None

        return await handler(event, data)

    @staticmethod
    async def _deny(event: Union[Message, CallbackQuery], text: str):
        if isinstance(event, CallbackQuery):
            await event.answer(text, show_alert=True)
        else:
            await event.answer(text)

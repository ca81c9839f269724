from typing import Any, Awaitable, Callable, Dict, Optional, Union

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from services.users import get_user_by_telegram_id


def event_user_id(event: TelegramObject) -> Optional[int]:
    """Telegram ID отправителя для Message и CallbackQuery, иначе None."""
    if isinstance(event, (Message, CallbackQuery)) and event.from_user:
        return event.from_user.id
    return None


class ActorMiddleware(BaseMiddleware):
    """
    Middleware, загружающий текущего пользователя из БД.

    Пользователь кладется в data["actor"] и передается обработчикам явно.
    Для незарегистрированных пользователей actor равен None.
    """

    def __init__(self, default_language: str = "en"):
        self.default_language = default_language
        super().__init__()

    async def __call__(
            self,
            handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
            event: Union[Message, CallbackQuery],
            data: Dict[str, Any]
    ) -> Any:
        user_id = event_user_id(event)
        session = data.get("session")

        actor = None
        if user_id is not None and session is not None:
            actor = await get_user_by_telegram_id(session, user_id)

        # Отключенные пользователи считаются незарегистрированными
        if actor is not None and not actor.is_active:
            actor = None

        data["actor"] = actor
        data["language"] = actor.language if actor else self.default_language
        return await handler(event, data)

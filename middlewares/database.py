from typing import Dict, Any, Callable, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
import logging

# Импортируем модуль database полностью, чтобы видеть актуальную фабрику сессий
import database
from database import init_db

logger = logging.getLogger(__name__)


class DatabaseMiddleware(BaseMiddleware):
    """
    Middleware для работы с базой данных.
    Создает сессию для каждого апдейта и закрывает ее после обработки.
    """

    async def __call__(
            self,
            handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
            event: TelegramObject,
            data: Dict[str, Any]
    ) -> Any:
        if database.async_session_factory is None:
            logger.warning("async_session_factory is None! Инициализируем...")
            await init_db()

        async with database.async_session_factory() as session:
            data["session"] = session
            try:
                return await handler(event, data)
            except Exception:
                logger.error("Ошибка при обработке апдейта, откатываем транзакцию", exc_info=True)
                await session.rollback()
                raise

from aiogram import Dispatcher

from config import Config
from middlewares.database import DatabaseMiddleware
from middlewares.actor import ActorMiddleware
from middlewares.role import RoleMiddleware
from middlewares.throttling import ThrottlingMiddleware


# middlewares/__init__.py
def setup_middlewares(dp: Dispatcher, config: Config):
    # Сессия БД создается на каждый апдейт
    dp.update.middleware.register(DatabaseMiddleware())

    # Текущий пользователь и защита от спама для сообщений и callback-запросов
    for observer in (dp.message, dp.callback_query):
        observer.middleware.register(ActorMiddleware(config.localization.default_language))
        observer.middleware.register(ThrottlingMiddleware(rate_limit=config.tg_bot.throttle_rate))


__all__ = [
    'setup_middlewares',
    'DatabaseMiddleware', 'ActorMiddleware', 'RoleMiddleware', 'ThrottlingMiddleware',
]

# bot.py
# ------

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.client.default import DefaultBotProperties

from config import Config
from handlers import register_all_handlers
from middlewares import setup_middlewares


def setup_bot(config: Config) -> Bot:
    """
    Настройка и инициализация бота.
    """
    bot = Bot(
        token=config.tg_bot.token,
        default=DefaultBotProperties(parse_mode="HTML")
    )
    return bot


def setup_dispatcher(config: Config) -> Dispatcher:
    """
    Настройка диспетчера: хранилище состояний, middleware и обработчики.
    Конфигурация передается в обработчики через параметр config.
    """
    # Используем MemoryStorage для хранения состояний FSM
    storage = MemoryStorage()
    dp = Dispatcher(storage=storage, config=config)

    setup_middlewares(dp, config)
    register_all_handlers(dp)

    return dp

import asyncio
import logging

from bot import setup_bot, setup_dispatcher
from config import load_config
from database import init_db, create_tables, dispose_db
from utils.i18n import setup_i18n

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """
    Настройка логирования: файл bot.log и вывод в консоль.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler("bot.log"),
            logging.StreamHandler()
        ]
    )


async def main():
    """
    Основная функция запуска бота.
    """
    # Загрузка конфигурации
    config = load_config()
    setup_logging(config.log_level)

    logger.info("Запуск бота...")

    await init_db(config)  # Сначала инициализируем БД
    await create_tables()

    # Инициализация i18n
    setup_i18n(
        locales_dir=str(config.localization.locales_dir),
        default_language=config.localization.default_language
    )

    bot = setup_bot(config)
    dp = setup_dispatcher(config)

    try:
        logger.info("Бот запущен")

        # Пропускаем апдейты, накопившиеся пока бот был выключен
        await bot.delete_webhook(drop_pending_updates=True)

        # Запуск поллинга
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        logger.info("Бот остановлен")
        await bot.session.close()
        await dispose_db()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Бот остановлен")

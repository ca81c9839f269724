from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import Optional
import logging

from config import Config, load_config

# База для всех моделей
Base = declarative_base()

# Инициализация логгера
logger = logging.getLogger(__name__)

# Глобальные переменные для работы с БД
engine = None
async_session_factory = None


async def init_db(config: Optional[Config] = None) -> None:
    """
    Инициализирует соединение с базой данных.

    Args:
        config: Объект конфигурации
    """
    global engine, async_session_factory

    if config is None:
        config = load_config()

    uri = config.db.get_uri()
    is_sqlite = uri.startswith("sqlite")

    if is_sqlite:
        logger.info(f"Инициализация соединения с базой данных: {uri}")
        # Для SQLite пул соединений не настраивается
        engine = create_async_engine(
            uri,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False}
        )
    else:
        logger.info(f"Инициализация соединения с базой данных: {config.db.host}:{config.db.port}/{config.db.database}")
        engine = create_async_engine(
            uri,
            echo=False,
            future=True,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20
        )

    # Создаём фабрику сессий
    async_session_factory = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    logger.info("Соединение с базой данных успешно инициализировано")


async def create_tables() -> None:
    """
    Создание всех таблиц в базе данных.
    """
    if engine is None:
        await init_db()

    # Регистрируем модели в метаданных
    import models  # noqa: F401

    async with engine.begin() as conn:
        logger.info("Создание таблиц в базе данных...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Таблицы успешно созданы")


async def dispose_db() -> None:
    """
    Закрывает все соединения с базой данных.
    """
    global engine, async_session_factory

    if engine is not None:
        await engine.dispose()
        logger.info("Соединения с базой данных закрыты")

    engine = None
    async_session_factory = None

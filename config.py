from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from environs import Env


@dataclass
class DbConfig:
    """Конфигурация базы данных"""
    host: str
    port: int
    user: str
    password: str
    database: str
    url: Optional[str] = None

    def get_uri(self):
        """
        Возвращает URI для подключения к базе данных.
        Если задан DB_URL, он имеет приоритет над отдельными параметрами.

        Returns:
            str: URI подключения
        """
        if self.url:
            return self.url
        return f"mysql+aiomysql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class TgBot:
    """Конфигурация Telegram бота"""
    token: str
    admin_ids: List[int]
    throttle_rate: float = 0.5
    page_size: int = 5


@dataclass
class Localization:
    """Конфигурация локализации"""
    default_language: str
    languages: List[str]
    locales_dir: Path


@dataclass
class Config:
    """Основная конфигурация приложения"""
    tg_bot: TgBot
    db: DbConfig
    localization: Localization
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> Config:
    """
    Загружает конфигурацию из .env файла.

    Args:
        path: Путь к .env файлу (опционально)

    Returns:
        Config: Объект с конфигурацией
    """
    env = Env()
    env.read_env(path)

    db_url = env.str('DB_URL', None)
    if db_url:
        db = DbConfig(host='', port=0, user='', password='', database='', url=db_url)
    else:
        db = DbConfig(
            host=env.str('DB_HOST'),
            port=env.int('DB_PORT', 3306),
            user=env.str('DB_USER'),
            password=env.str('DB_PASS'),
            database=env.str('DB_NAME'),
        )

    return Config(
        tg_bot=TgBot(
            token=env.str('BOT_TOKEN'),
            admin_ids=list(map(int, env.list('ADMIN_IDS', []))),
            throttle_rate=env.float('THROTTLE_RATE', 0.5),
            page_size=env.int('PAGE_SIZE', 5),
        ),
        db=db,
        localization=Localization(
            default_language=env.str('DEFAULT_LANGUAGE', 'en'),
            languages=env.list('LANGUAGES', ['en', 'ru']),
            locales_dir=Path(__file__).parent / 'locales',
        ),
        log_level=env.str('LOG_LEVEL', 'INFO').upper(),
    )

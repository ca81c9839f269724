from typing import Dict, List, Optional
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOCALES_DIR = Path(__file__).resolve().parent.parent / "locales"


class I18nManager:
    """
    Менеджер локализации (i18n) для поддержки мультиязычности в боте.
    Переводы хранятся в JSON-файлах вида locales/<язык>.json.
    """

    def __init__(self, locales_dir: str, default_language: str = "en"):
        """
        Инициализирует менеджер локализации.

        Args:
            locales_dir: Путь к директории с файлами локализации
            default_language: Язык по умолчанию
        """
        self.locales_dir = Path(locales_dir)
        self.default_language = default_language
        self.translations: Dict[str, Dict[str, str]] = {}

        self._load_translations()

    def _load_translations(self) -> None:
        """Загружает все файлы переводов из директории locales."""
        if not self.locales_dir.exists():
            logger.warning(f"Директория локализаций не найдена: {self.locales_dir}")
            return

        for locale_file in sorted(self.locales_dir.glob("*.json")):
            try:
                with open(locale_file, 'r', encoding='utf-8') as f:
                    self.translations[locale_file.stem] = json.load(f)
                logger.info(f"Загружен файл локализации: {locale_file.stem}")
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Ошибка при загрузке файла локализации {locale_file}: {e}")

    def get_text(self, key: str, language: Optional[str] = None, **kwargs) -> str:
        """
        Получает перевод по ключу для указанного языка.

        Если ключа нет в выбранном языке, используется язык по умолчанию,
        а если нет и там, возвращается сам ключ.

        Args:
            key: Ключ перевода
            language: Код языка (если None, используется язык по умолчанию)
            **kwargs: Параметры для форматирования строки

        Returns:
            str: Переведенный текст
        """
        lang = language if language in self.translations else self.default_language

        translation = self.translations.get(lang, {}).get(key)
        if translation is None and lang != self.default_language:
            translation = self.translations.get(self.default_language, {}).get(key)

        if translation is None:
            logger.warning(f"Перевод для ключа '{key}' не найден")
            return key

        if kwargs:
            try:
                return translation.format(**kwargs)
            except (KeyError, IndexError) as e:
                logger.error(f"Ошибка форматирования перевода '{key}': {e}")
                return translation

        return translation

    def get_all_languages(self) -> List[str]:
        """Возвращает список всех доступных языков."""
        return sorted(self.translations.keys())


# Глобальный экземпляр менеджера локализации
_i18n_manager = None


def setup_i18n(locales_dir: str = None, default_language: str = "en") -> I18nManager:
    """
    Инициализирует глобальный менеджер локализации.

    Args:
        locales_dir: Путь к директории с файлами локализации
        default_language: Язык по умолчанию

    Returns:
        I18nManager: Экземпляр менеджера локализации
    """
    global _i18n_manager
    _i18n_manager = I18nManager(locales_dir or DEFAULT_LOCALES_DIR, default_language)
    return _i18n_manager


def get_i18n() -> I18nManager:
    """
    Возвращает глобальный менеджер локализации.

    Returns:
        I18nManager: Экземпляр менеджера локализации
    """
    if _i18n_manager is None:
        raise RuntimeError("I18n не инициализирован. Вызовите setup_i18n() перед использованием.")
    return _i18n_manager


def _(key: str, language: str = None, **kwargs) -> str:
    """Функция-помощник для получения перевода."""
    return get_i18n().get_text(key, language, **kwargs)


def denial_text(reason, language: str = None) -> str:
    """
    Текст сообщения об отказе по коду причины.

    Args:
        reason: DenialReason или None
        language: Код языка

    Returns:
        str: Понятное пользователю объяснение
    """
    if reason is None:
        return _("error_access_denied", language)
    return _(f"denied_{reason.value}", language)

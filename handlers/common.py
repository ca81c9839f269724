import logging
from typing import Optional, Union

from aiogram import Router, F, Dispatcher
from aiogram.filters import Command, CommandStart
from aiogram.types import Message, CallbackQuery
from aiogram.fsm.context import FSMContext
from aiogram.utils.text_decorations import html_decoration
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from models import User, UserRole
from services.users import get_or_create_user, set_language
from utils.i18n import _
from utils.keyboards import KeyboardFactory, MENU_BUTTON_TEXT
from utils.states import UserStates, AgentStates, AdminStates

# Инициализация логгера
logger = logging.getLogger(__name__)

# Создание роутера
router = Router()

MAIN_MENU_STATES = {
    UserRole.USER: UserStates.MAIN_MENU,
    UserRole.AGENT: AgentStates.MAIN_MENU,
    UserRole.ADMIN: AdminStates.MAIN_MENU,
}


async def show_main_menu(target: Union[Message, CallbackQuery], user: User, state: FSMContext):
    """
    Показывает главное меню, соответствующее роли пользователя.

    Args:
        target: Сообщение (меню отправляется новым сообщением) или callback (сообщение редактируется)
        user: Текущий пользователь
        state: Контекст FSM
    """
    text = _(f"main_menu_{user.role.value}", user.language, name=html_decoration.quote(user.display_name))
    markup = KeyboardFactory.main_menu(user.role, user.language)

    if isinstance(target, CallbackQuery):
        await target.message.edit_text(text, reply_markup=markup)
    else:
        await target.answer(text, reply_markup=markup)

    await state.set_state(MAIN_MENU_STATES[user.role])


@router.message(CommandStart())
async def command_start(message: Message, session: AsyncSession, state: FSMContext, config: Config):
    """
    Обработчик команды /start. Регистрирует нового пользователя.
    """
    await state.clear()

    user, created = await get_or_create_user(
        session,
        telegram_id=message.from_user.id,
        name=message.from_user.full_name,
        admin_ids=config.tg_bot.admin_ids
    )

    if not user.is_active:
        await message.answer(_("error_account_disabled", user.language))
        return

    if created:
        await message.answer(
            _("welcome_new", user.language),
            reply_markup=KeyboardFactory.main_reply_keyboard()
        )
        await message.answer(
            _("select_language", user.language),
            reply_markup=KeyboardFactory.language_selection(config.localization.languages)
        )
        await state.set_state(UserStates.SELECTING_LANGUAGE)
    else:
        await message.answer(
            _("welcome_back", user.language, name=html_decoration.quote(user.display_name)),
            reply_markup=KeyboardFactory.main_reply_keyboard()
        )
        await show_main_menu(message, user, state)

    logger.info(f"User {message.from_user.id} started the bot (new: {created})")


@router.message(F.text == MENU_BUTTON_TEXT)
@router.message(Command("menu"))
async def command_menu(message: Message, state: FSMContext, actor: Optional[User], language: str):
    """
    Обработчик команды /menu и кнопки "Меню" на reply-клавиатуре.
    """
    if actor is None:
        await message.answer(_("error_not_registered", language))
        return

    await show_main_menu(message, actor, state)


@router.message(Command("help"))
async def command_help(message: Message, actor: Optional[User], language: str):
    """
    Обработчик команды /help. Текст справки зависит от роли.
    """
    role = actor.role if actor else UserRole.USER
    await message.answer(_("help_common", language) + "\n\n" + _(f"help_{role.value}", language))
    logger.info(f"User {message.from_user.id} requested help")


@router.message(Command("cancel"))
async def command_cancel(message: Message, state: FSMContext, actor: Optional[User], language: str):
    """
    Отменяет текущее действие (создание тикета, ввод комментария, поиск).
    """
    await message.answer(_("action_cancelled", language))
    if actor is not None:
        await show_main_menu(message, actor, state)
    else:
        await state.clear()


@router.callback_query(F.data == "menu:main")
async def back_to_menu(callback_query: CallbackQuery, state: FSMContext, actor: Optional[User], language: str):
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    await show_main_menu(callback_query, actor, state)
    await callback_query.answer()


@router.callback_query(F.data == "menu:language")
async def change_language(callback_query: CallbackQuery, state: FSMContext, actor: Optional[User],
                          language: str, config: Config):
    """
    Показывает клавиатуру выбора языка.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    await callback_query.message.edit_text(
        _("select_language", language),
        reply_markup=KeyboardFactory.language_selection(config.localization.languages, actor.language)
    )
    await state.set_state(UserStates.SELECTING_LANGUAGE)
    await callback_query.answer()


@router.callback_query(F.data.startswith("language:"))
async def process_language_selection(callback_query: CallbackQuery, session: AsyncSession, state: FSMContext,
                                     actor: Optional[User], language: str, config: Config):
    """
    Сохраняет выбранный язык и возвращает пользователя в главное меню.
    """
    if actor is None:
        await callback_query.answer(_("error_not_registered", language), show_alert=True)
        return

    selected = callback_query.data.split(":")[1]
    if selected not in config.localization.languages:
        await callback_query.answer()
        return

    await set_language(session, actor, selected)
    await callback_query.answer(_("language_changed", selected))
    await show_main_menu(callback_query, actor, state)

    logger.info(f"User {actor.id} switched language to {selected}")


def register_handlers(dp: Dispatcher):
    """
    Регистрирует все обработчики данного модуля.

    Args:
        dp: Диспетчер
    """
    dp.include_router(router)

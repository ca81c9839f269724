from aiogram import Dispatcher

from handlers import common, tickets, user, agent, admin
from middlewares.role import RoleMiddleware
from models import UserRole


def register_all_handlers(dp: Dispatcher):
    """
    Регистрация всех обработчиков.

    Args:
        dp: Диспетчер
    """
    # Регистрируем обработчики в порядке приоритета

    # Общие обработчики (доступны всем, включая незарегистрированных)
    common.register_handlers(dp)

    # Карточка тикета и действия с ним (права проверяются правилами)
    tickets.register_handlers(dp)

    # Каждый следующий роутер доступен только с ролью не ниже указанной
    for module, min_role in ((user, UserRole.USER), (agent, UserRole.AGENT), (admin, UserRole.ADMIN)):
        module.router.message.middleware(RoleMiddleware(min_role))
        module.router.callback_query.middleware(RoleMiddleware(min_role))
        module.register_handlers(dp)

from aiogram.fsm.state import State, StatesGroup


class UserStates(StatesGroup):
    """Состояния пользовательского интерфейса"""
    SELECTING_LANGUAGE = State()   # Пользователь выбирает язык
    MAIN_MENU = State()            # Главное меню
    ENTERING_SUBJECT = State()     # Ввод темы нового тикета
    ENTERING_DESCRIPTION = State()  # Ввод описания нового тикета
    SELECTING_PRIORITY = State()   # Выбор приоритета нового тикета
    VIEWING_TICKETS = State()      # Просмотр списка тикетов


class TicketStates(StatesGroup):
    """Состояния работы с конкретным тикетом (общие для всех ролей)"""
    VIEWING_TICKET = State()       # Просмотр карточки тикета
    WRITING_COMMENT = State()      # Ввод комментария или отправка вложения
    EDITING_FIELD = State()        # Ввод нового значения поля тикета


class AgentStates(StatesGroup):
    """Состояния интерфейса агента"""
    MAIN_MENU = State()
    VIEWING_QUEUE = State()        # Очередь неназначенных тикетов
    SELECTING_HANDOVER = State()   # Выбор агента для передачи тикета


class AdminStates(StatesGroup):
    """Состояния интерфейса администратора"""
    MAIN_MENU = State()
    VIEWING_TICKETS = State()      # Просмотр всех тикетов с фильтрами
    SEARCHING_TICKETS = State()    # Ввод строки поиска
    SELECTING_ASSIGNEE = State()   # Выбор исполнителя для тикета

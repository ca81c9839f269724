# user.py
# -------

import enum
from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, Enum, DateTime
from sqlalchemy.orm import relationship

from database import Base


class UserRole(enum.Enum):
    """Роли пользователей в системе"""
    USER = "user"  # Обычный пользователь, создает тикеты
    AGENT = "agent"  # Агент поддержки (обработчик тикетов)
    ADMIN = "admin"  # Администратор (с полным доступом)


class User(Base):
    """Модель пользователя системы"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    avatar = Column(String(255), nullable=True)  # Telegram file_id фото профиля
    language = Column(String(10), nullable=False, default="en")
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Отношения
    tickets = relationship("Ticket", back_populates="owner", foreign_keys="[Ticket.owner_id]",
                           cascade="all, delete-orphan")
    assigned_tickets = relationship("Ticket", back_populates="assignee", foreign_keys="[Ticket.assignee_id]")

    def __repr__(self):
        return f"<User #{self.id}: {self.display_name} ({self.role.value if self.role else '?'})>"

    @property
    def display_name(self) -> str:
        """
        Отображаемое имя пользователя.

        Returns:
            str: Имя, либо локальная часть email, либо "Unknown User"
        """
        if self.name:
            return self.name
        if self.email and self.email.split("@")[0]:
            return self.email.split("@")[0]
        return "Unknown User"

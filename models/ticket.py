import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Enum, DateTime, ForeignKey, Float, Text
from sqlalchemy.orm import relationship

from database import Base


class TicketStatus(enum.Enum):
    """Статусы тикетов в системе"""
    OPEN = "open"  # Тикет создан, но не взят агентом в работу
    IN_PROGRESS = "in_progress"  # Агент работает над тикетом
    RESOLVED = "resolved"  # Проблема решена, ожидается закрытие или оценка от автора
    CLOSED = "closed"  # Тикет закрыт, изменения больше невозможны


class TicketPriority(enum.Enum):
    """Приоритеты тикетов"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Ticket(Base):
    """Модель тикета поддержки"""
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(Enum(TicketStatus), nullable=False, default=TicketStatus.OPEN)
    priority = Column(Enum(TicketPriority), nullable=False, default=TicketPriority.MEDIUM)
    category = Column(String(100), nullable=True)
    rating = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    resolved_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    # Отношения
    owner = relationship("User", back_populates="tickets", foreign_keys=[owner_id])
    assignee = relationship("User", back_populates="assigned_tickets", foreign_keys=[assignee_id])
    comments = relationship("Comment", back_populates="ticket", cascade="all, delete-orphan",
                            order_by="Comment.created_at")
    attachments = relationship("Attachment", back_populates="ticket", cascade="all, delete-orphan",
                               order_by="Attachment.created_at")

    def __repr__(self):
        return f"<Ticket #{self.id}: {self.status.value if self.status else '?'}>"

    @property
    def is_closed(self) -> bool:
        return self.status == TicketStatus.CLOSED

    def set_status(self, status: TicketStatus):
        """
        Меняет статус тикета и проставляет соответствующие отметки времени.

        Проверка допустимости перехода здесь не выполняется, ее делает
        rules.lifecycle до вызова этого метода.

        Args:
            status: Новый статус
        """
        now = datetime.now()
        self.status = status

        if status == TicketStatus.RESOLVED:
            self.resolved_at = now
        elif status == TicketStatus.CLOSED:
            self.closed_at = now
            if self.resolved_at is None:
                self.resolved_at = now

    def rate(self, rating: int, feedback: str = None):
        """
        Сохраняет оценку автора и закрывает тикет.

        Args:
            rating: Оценка пользователя (от 1 до 5)
            feedback: Необязательный отзыв
        """
        self.rating = rating
        if feedback:
            self.feedback = feedback
        self.set_status(TicketStatus.CLOSED)

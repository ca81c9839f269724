from datetime import datetime
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from database import Base


class Comment(Base):
    """Модель комментария к тикету. Комментарии только добавляются, не редактируются."""
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    # Отношения
    ticket = relationship("Ticket", back_populates="comments")
    author = relationship("User")

    def __repr__(self):
        return f"<Comment #{self.id} on ticket #{self.ticket_id}>"

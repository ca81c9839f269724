from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from database import Base


class Attachment(Base):
    """
    Метаданные вложения к тикету.
    Сам файл хранится в Telegram, здесь только file_id и описание.
    """
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=True)
    mime_type = Column(String(100), nullable=True)
    size = Column(Integer, nullable=False, default=0)
    file_id = Column(String(255), nullable=False)  # Telegram file_id
    created_at = Column(DateTime, default=datetime.now)

    # Отношения
    ticket = relationship("Ticket", back_populates="attachments")
    uploader = relationship("User")

    def __repr__(self):
        return f"<Attachment #{self.id}: {self.filename}>"

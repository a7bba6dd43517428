from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lyro_api.database import Base


class Message(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False)  # user, bot
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    session = relationship("ChatSession", back_populates="messages")

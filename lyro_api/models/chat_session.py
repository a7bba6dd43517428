import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from lyro_api.database import Base


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    owner_identity = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True))
    last_message_at = Column(DateTime(timezone=True))
    last_message_preview = Column(Text)
    conversation_seq = Column(Integer, nullable=False, default=1)
    pinned = Column(Boolean, nullable=False, default=False)

    messages = relationship(
        "Message",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.id",
    )

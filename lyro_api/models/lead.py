from sqlalchemy import Column, DateTime, Integer, String, Text

from lyro_api.database import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_identity = Column(String(128), nullable=False)
    session_id = Column(String(64), nullable=False, index=True)
    full_name = Column(Text, nullable=False)
    phone_number = Column(String(32), nullable=False)
    course_name = Column(Text, nullable=False)
    schedule_preference_id = Column(String(64))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True))

import uuid

from sqlalchemy import Column, DateTime, String

from lyro_api.database import Base


class SchedulePreference(Base):
    __tablename__ = "schedule_preferences"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    owner_identity = Column(String(128), nullable=False)
    session_id = Column(String(64), nullable=False, index=True)
    time_of_day = Column(String(16), nullable=False)  # morning, afternoon, evening
    day_band = Column(String(16), nullable=False)  # weekday, weekend
    created_at = Column(DateTime(timezone=True), nullable=False)

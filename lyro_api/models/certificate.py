from sqlalchemy import Column, DateTime, Integer, String, Text

from lyro_api.database import Base


class CertificateRecord(Base):
    """Default layout of the certificate table; it is owned by the academic system."""

    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_code = Column(String(32), nullable=False, index=True)
    course_name = Column(Text, nullable=False)
    status = Column(String(32), nullable=False)  # ready, in_progress, not_ready
    last_updated = Column(DateTime(timezone=True))

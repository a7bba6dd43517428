from lyro_api.models.certificate import CertificateRecord
from lyro_api.models.chat_session import ChatSession
from lyro_api.models.lead import Lead
from lyro_api.models.message import Message
from lyro_api.models.schedule_preference import SchedulePreference

__all__ = [
    "ChatSession",
    "Message",
    "Lead",
    "SchedulePreference",
    "CertificateRecord",
]

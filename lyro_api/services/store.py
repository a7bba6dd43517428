"""Storage contract used by the chat core, plus its SQLAlchemy implementation."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import column, func, inspect, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lyro_api.logging_config import get_logger
from lyro_api.models import ChatSession, Lead, Message, SchedulePreference
from lyro_api.services.errors import PersistenceError, SchemaNegotiationError
from lyro_api.services.text_utils import normalize_for_matching, preview

logger = get_logger("store")

LEAD_SCAN_LIMIT = 2000
MAX_SESSION_LIST = 100

CERTIFICATE_STATUS_ALIASES = {
    "ready": "ready",
    "listo": "ready",
    "emitido": "ready",
    "entregado": "ready",
    "in_progress": "in_progress",
    "in progress": "in_progress",
    "en_proceso": "in_progress",
    "en proceso": "in_progress",
    "processing": "in_progress",
    "not_ready": "not_ready",
    "no_listo": "not_ready",
    "pendiente": "not_ready",
}


@dataclass(frozen=True)
class SessionSummary:
    id: str
    created_at: datetime
    last_message_at: Optional[datetime]
    last_message_preview: Optional[str]
    conversation_seq: int
    pinned: bool


@dataclass(frozen=True)
class MessageRecord:
    role: str
    content: str
    created_at: datetime


@dataclass(frozen=True)
class LeadFields:
    full_name: str
    phone_number: str
    course_name: str
    schedule_preference_id: Optional[str] = None


@dataclass(frozen=True)
class LeadRecord:
    full_name: str
    phone_number: str
    course_name: str
    schedule_preference_id: Optional[str]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class CertificateInfo:
    order_code: str
    course_name: str
    status: str  # ready, in_progress, not_ready
    last_updated: Optional[datetime]


@dataclass(frozen=True)
class CertificateColumns:
    table: str = "certificates"
    code: str = "order_code"
    course: str = "course_name"
    status: str = "status"
    updated: str = "last_updated"


CERTIFICATE_COLUMN_CANDIDATES = {
    "code": ("order_code", "order_or_id_code", "id_code", "codigo", "code"),
    "course": ("course_name", "curso", "course"),
    "status": ("status", "estado"),
    "updated": ("last_updated", "updated_at", "fecha_actualizacion"),
}


def negotiate_certificate_columns(engine, table_name: str = "certificates") -> CertificateColumns:
    """Pick the certificate table's column names once at startup. Fails fast."""
    inspector = inspect(engine)
    if not inspector.has_table(table_name):
        raise SchemaNegotiationError(table_name, sorted(CERTIFICATE_COLUMN_CANDIDATES))

    present = {col["name"].lower(): col["name"] for col in inspector.get_columns(table_name)}
    chosen: dict[str, str] = {}
    missing: list[str] = []
    for role, candidates in CERTIFICATE_COLUMN_CANDIDATES.items():
        match = next((present[name] for name in candidates if name in present), None)
        if match is None:
            missing.append(role)
        else:
            chosen[role] = match

    if missing:
        raise SchemaNegotiationError(table_name, missing)

    columns = CertificateColumns(table=table_name, **chosen)
    logger.info("Certificate schema negotiated", extra={"context": columns.__dict__})
    return columns


def normalize_certificate_status(raw: Optional[str]) -> str:
    key = (raw or "").strip().lower()
    return CERTIFICATE_STATUS_ALIASES.get(key, "not_ready")


def _as_aware(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _name_matches(normalized_query: str, full_name: str) -> bool:
    name = normalize_for_matching(full_name)
    return all(token in name for token in normalized_query.split())


class ChatStore(ABC):
    """What the chat core needs from storage. Every method may raise PersistenceError."""

    @abstractmethod
    def create_session(self, owner_identity: str, session_id: Optional[str] = None) -> str:
        pass

    @abstractmethod
    def append_message(self, session_id: str, role: str, content: str) -> None:
        pass

    @abstractmethod
    def touch_session(self, session_id: str, preview_text: str) -> None:
        pass

    @abstractmethod
    def get_session_owner(self, session_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def list_sessions(self, owner_identity: str, limit: int) -> List[SessionSummary]:
        pass

    @abstractmethod
    def get_messages(self, session_id: str, limit: int = 200) -> List[MessageRecord]:
        pass

    @abstractmethod
    def set_pinned(self, session_id: str, pinned: bool) -> bool:
        pass

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        pass

    @abstractmethod
    def upsert_lead(self, owner_identity: str, session_id: str, fields: LeadFields) -> None:
        pass

    @abstractmethod
    def upsert_schedule_preference(
        self, owner_identity: str, session_id: str, time_of_day: str, day_band: str
    ) -> str:
        pass

    @abstractmethod
    def find_certificate(self, order_code: str, course_substring: str) -> Optional[CertificateInfo]:
        pass

    @abstractmethod
    def find_leads_by_name(self, name_substring: str) -> List[LeadRecord]:
        pass

    @abstractmethod
    def find_leads_by_phone_variants(
        self, variants: Sequence[str], name_filter: Optional[str] = None
    ) -> List[LeadRecord]:
        pass


class SqlChatStore(ChatStore):
    def __init__(self, db: Session, certificate_columns: Optional[CertificateColumns] = None):
        self.db = db
        self.certificate_columns = certificate_columns or CertificateColumns()

    @contextmanager
    def _guard(self, operation: str, write: bool = False) -> Iterator[None]:
        try:
            yield
            if write:
                self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Store operation {operation} failed: {exc}")
            raise PersistenceError(f"{operation} failed") from exc

    def _session(self, session_id: str) -> Optional[ChatSession]:
        return self.db.get(ChatSession, session_id)

    # Sessions and messages

    def create_session(self, owner_identity: str, session_id: Optional[str] = None) -> str:
        with self._guard("create_session", write=True):
            last_seq = (
                self.db.query(func.max(ChatSession.conversation_seq))
                .filter(ChatSession.owner_identity == owner_identity)
                .scalar()
            )
            now = datetime.now(timezone.utc)
            chat_session = ChatSession(
                owner_identity=owner_identity,
                created_at=now,
                last_seen_at=now,
                conversation_seq=(last_seq or 0) + 1,
                pinned=False,
            )
            if session_id:
                chat_session.id = session_id
            self.db.add(chat_session)
            self.db.flush()
            return chat_session.id

    def append_message(self, session_id: str, role: str, content: str) -> None:
        with self._guard("append_message", write=True):
            now = datetime.now(timezone.utc)
            last_at = _as_aware(
                self.db.query(func.max(Message.created_at)).filter(Message.session_id == session_id).scalar()
            )
            if last_at is not None and now <= last_at:
                now = last_at + timedelta(microseconds=1)
            self.db.add(Message(session_id=session_id, role=role, content=content, created_at=now))
            self.db.flush()

    def touch_session(self, session_id: str, preview_text: str) -> None:
        with self._guard("touch_session", write=True):
            chat_session = self._session(session_id)
            if chat_session is None:
                return
            now = datetime.now(timezone.utc)
            chat_session.last_seen_at = now
            chat_session.last_message_at = now
            chat_session.last_message_preview = preview(preview_text)
            self.db.flush()

    def get_session_owner(self, session_id: str) -> Optional[str]:
        with self._guard("get_session_owner"):
            chat_session = self._session(session_id)
            return chat_session.owner_identity if chat_session else None

    def list_sessions(self, owner_identity: str, limit: int) -> List[SessionSummary]:
        limit = max(1, min(limit, MAX_SESSION_LIST))
        with self._guard("list_sessions"):
            rows = (
                self.db.query(ChatSession)
                .filter(ChatSession.owner_identity == owner_identity)
                .order_by(
                    ChatSession.pinned.desc(),
                    func.coalesce(ChatSession.last_message_at, ChatSession.created_at).desc(),
                )
                .limit(limit)
                .all()
            )
            return [
                SessionSummary(
                    id=row.id,
                    created_at=_as_aware(row.created_at),
                    last_message_at=_as_aware(row.last_message_at),
                    last_message_preview=row.last_message_preview,
                    conversation_seq=row.conversation_seq,
                    pinned=bool(row.pinned),
                )
                for row in rows
            ]

    def get_messages(self, session_id: str, limit: int = 200) -> List[MessageRecord]:
        with self._guard("get_messages"):
            rows = (
                self.db.query(Message)
                .filter(Message.session_id == session_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
                .limit(limit)
                .all()
            )
            return [MessageRecord(role=m.role, content=m.content, created_at=_as_aware(m.created_at)) for m in rows]

    def set_pinned(self, session_id: str, pinned: bool) -> bool:
        with self._guard("set_pinned", write=True):
            chat_session = self._session(session_id)
            if chat_session is None:
                return False
            chat_session.pinned = pinned
            self.db.flush()
            return True

    def delete_session(self, session_id: str) -> bool:
        with self._guard("delete_session", write=True):
            chat_session = self._session(session_id)
            if chat_session is None:
                return False
            self.db.query(Message).filter(Message.session_id == session_id).delete(synchronize_session=False)
            self.db.delete(chat_session)
            self.db.flush()
            return True

    # Leads and schedule preferences

    def upsert_lead(self, owner_identity: str, session_id: str, fields: LeadFields) -> None:
        with self._guard("upsert_lead", write=True):
            now = datetime.now(timezone.utc)
            lead = (
                self.db.query(Lead)
                .filter(
                    Lead.session_id == session_id,
                    Lead.course_name == fields.course_name,
                    Lead.phone_number == fields.phone_number,
                )
                .first()
            )
            if lead is None:
                lead = Lead(
                    owner_identity=owner_identity,
                    session_id=session_id,
                    phone_number=fields.phone_number,
                    course_name=fields.course_name,
                    created_at=now,
                )
                self.db.add(lead)
            lead.full_name = fields.full_name
            lead.schedule_preference_id = fields.schedule_preference_id
            lead.updated_at = now
            self.db.flush()

    def upsert_schedule_preference(
        self, owner_identity: str, session_id: str, time_of_day: str, day_band: str
    ) -> str:
        with self._guard("upsert_schedule_preference", write=True):
            preference = (
                self.db.query(SchedulePreference)
                .filter(SchedulePreference.session_id == session_id)
                .first()
            )
            if preference is None:
                preference = SchedulePreference(owner_identity=owner_identity, session_id=session_id)
                self.db.add(preference)
            preference.time_of_day = time_of_day
            preference.day_band = day_band
            preference.created_at = datetime.now(timezone.utc)
            self.db.flush()
            return preference.id

    def find_leads_by_name(self, name_substring: str) -> List[LeadRecord]:
        query = normalize_for_matching(name_substring)
        if not query:
            return []
        return [lead for lead in self._recent_leads() if _name_matches(query, lead.full_name)]

    def find_leads_by_phone_variants(
        self, variants: Sequence[str], name_filter: Optional[str] = None
    ) -> List[LeadRecord]:
        """Try each variant in order; the last one is matched as a substring, the rest exactly."""
        normalized_name = normalize_for_matching(name_filter) if name_filter else ""
        with self._guard("find_leads_by_phone_variants"):
            for position, variant in enumerate(variants):
                if not variant:
                    continue
                if position == len(variants) - 1:
                    condition = Lead.phone_number.contains(variant)
                else:
                    condition = Lead.phone_number == variant
                rows = self.db.query(Lead).filter(condition).order_by(Lead.created_at.desc()).all()
                records = [self._lead_record(row) for row in rows]
                if normalized_name:
                    records = [r for r in records if _name_matches(normalized_name, r.full_name)]
                if records:
                    return records
        return []

    def _recent_leads(self) -> List[LeadRecord]:
        with self._guard("find_leads_by_name"):
            rows = self.db.query(Lead).order_by(Lead.created_at.desc()).limit(LEAD_SCAN_LIMIT).all()
            return [self._lead_record(row) for row in rows]

    @staticmethod
    def _lead_record(row: Lead) -> LeadRecord:
        return LeadRecord(
            full_name=row.full_name,
            phone_number=row.phone_number,
            course_name=row.course_name,
            schedule_preference_id=row.schedule_preference_id,
            created_at=_as_aware(row.created_at),
        )

    # Certificates (read-only, external table)

    def find_certificate(self, order_code: str, course_substring: str) -> Optional[CertificateInfo]:
        cols = self.certificate_columns
        certificates = table(
            cols.table,
            column(cols.code),
            column(cols.course),
            column(cols.status),
            column(cols.updated),
        )
        wanted = normalize_for_matching(course_substring)
        with self._guard("find_certificate"):
            rows = self.db.execute(
                select(
                    certificates.c[cols.code],
                    certificates.c[cols.course],
                    certificates.c[cols.status],
                    certificates.c[cols.updated],
                ).where(certificates.c[cols.code] == order_code)
            ).all()

        for code, course_name, status, updated in rows:
            name = normalize_for_matching(course_name)
            if not name:
                continue
            if wanted and (wanted in name or name in wanted):
                return CertificateInfo(
                    order_code=str(code),
                    course_name=course_name,
                    status=normalize_certificate_status(status),
                    last_updated=_as_aware(updated),
                )
        return None

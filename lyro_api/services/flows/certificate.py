from datetime import datetime
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from lyro_api.config import settings
from lyro_api.logging_config import get_logger
from lyro_api.services.errors import PersistenceError
from lyro_api.services.flows.base import Flow, FlowContext, FlowKind, FlowOutcome, FlowStep
from lyro_api.services.foundation_knowledge import contact_text, load_foundation_truth
from lyro_api.services.replies import SUGGEST_CONTACT, SUGGEST_MENU, BotReply
from lyro_api.services.store import CertificateInfo
from lyro_api.services.text_utils import extract_order_code, normalize_for_matching

logger = get_logger("flows.certificate")

MIN_COURSE_QUERY_CHARS = 3

STATUS_TEMPLATES = {
    "ready": (
        "✅ ¡Buenas noticias! Tu certificado del curso *{course}* está listo.\n"
        "Última actualización: {updated}.\n"
        "Para recibirlo escríbenos a {email}."
    ),
    "in_progress": (
        "⏳ Tu certificado del curso *{course}* está en proceso.\n"
        "Última actualización: {updated}. Te avisaremos cuando esté listo."
    ),
    "not_ready": (
        "📄 Tu certificado del curso *{course}* todavía no está disponible.\n"
        "Última actualización: {updated}. Verifica haber completado todas las actividades del curso."
    ),
}

NOT_FOUND_TEMPLATE = (
    "No encontré un certificado con el código *{code}* para ese curso. "
    "Revisa los datos o comunícate con nosotros:\n{contact}"
)
LOOKUP_UNAVAILABLE_TEXT = "No pude consultar los certificados en este momento. Intenta más tarde o contáctanos:\n{contact}"


def format_local_timestamp(value: Optional[datetime], tz_name: Optional[str] = None) -> str:
    if value is None:
        return "sin fecha registrada"
    local = value.astimezone(ZoneInfo(tz_name or settings.timezone))
    return local.strftime("%d/%m/%Y %H:%M")


def _extract_course_query(text: str, ctx: FlowContext) -> Optional[str]:
    if len(normalize_for_matching(text)) < MIN_COURSE_QUERY_CHARS:
        return None
    return text.strip()


def render_certificate(record: CertificateInfo) -> str:
    template = STATUS_TEMPLATES.get(record.status, STATUS_TEMPLATES["not_ready"])
    email = (load_foundation_truth().get("contact") or {}).get("email", "")
    return template.format(course=record.course_name, updated=format_local_timestamp(record.last_updated), email=email)


class CertificateStatusFlow(Flow):
    kind = FlowKind.CERTIFICATE_STATUS
    intro = "📄 Consultemos el estado de tu certificado."
    steps = (
        FlowStep(
            name="order_code",
            instruction="Escribe el código de 4 dígitos de tu orden o inscripción (por ejemplo: 1234).",
            extract=lambda text, ctx: extract_order_code(text),
        ),
        FlowStep(
            name="course_query",
            instruction="Ahora escribe el nombre del curso, o una parte de él (por ejemplo: Emocional).",
            extract=_extract_course_query,
        ),
    )

    def complete(self, fields: Mapping[str, Any], ctx: FlowContext) -> FlowOutcome:
        code = fields["order_code"]
        suggestions = (SUGGEST_MENU, SUGGEST_CONTACT)
        try:
            record = ctx.store.find_certificate(code, fields["course_query"])
        except PersistenceError:
            logger.warning(f"Certificate lookup unavailable for session {ctx.session_id}")
            return FlowOutcome(BotReply(LOOKUP_UNAVAILABLE_TEXT.format(contact=contact_text()), suggestions), None)

        if record is None:
            text = NOT_FOUND_TEMPLATE.format(code=code, contact=contact_text())
            return FlowOutcome(BotReply(text, suggestions), None)

        return FlowOutcome(BotReply(render_certificate(record), suggestions), None)

from typing import Any, Mapping, Optional, Sequence

from lyro_api.logging_config import get_logger
from lyro_api.services.errors import PersistenceError
from lyro_api.services.flows.base import Flow, FlowContext, FlowKind, FlowOutcome, FlowStep
from lyro_api.services.flows.enrollment import FULL_NAME_STEP
from lyro_api.services.foundation_knowledge import contact_text
from lyro_api.services.replies import SUGGEST_CONTACT, SUGGEST_ENROLL, SUGGEST_MENU, BotReply
from lyro_api.services.store import LeadRecord
from lyro_api.services.text_utils import extract_phone, phone_variants

logger = get_logger("flows.verification")

NOT_FOUND_TEXT = (
    "No encontré ninguna inscripción a nombre de *{name}*. "
    "Si aún no te has inscrito, escribe *inscribirme* y te ayudo."
)
UNAVAILABLE_TEXT = "No pude revisar las inscripciones en este momento. Intenta más tarde o contáctanos:\n{contact}"


def _describe(leads: Sequence[LeadRecord]) -> str:
    lead = leads[0]
    lines = [f"✅ Encontré tu inscripción, {lead.full_name}:"]
    for record in leads:
        lines.append(f"• {record.course_name} (celular {record.phone_number})")
    return "\n".join(lines)


def _found(leads: Sequence[LeadRecord]) -> FlowOutcome:
    return FlowOutcome(BotReply(_describe(leads), (SUGGEST_MENU,)), None)


def _not_found(name: str) -> FlowOutcome:
    return FlowOutcome(BotReply(NOT_FOUND_TEXT.format(name=name), (SUGGEST_ENROLL, SUGGEST_MENU)), None)


def _unavailable() -> FlowOutcome:
    return FlowOutcome(BotReply(UNAVAILABLE_TEXT.format(contact=contact_text()), (SUGGEST_CONTACT, SUGGEST_MENU)), None)


class EnrollmentVerificationFlow(Flow):
    kind = FlowKind.ENROLLMENT_VERIFICATION
    intro = "🔎 Verifiquemos tu inscripción."
    steps = (
        FULL_NAME_STEP,
        FlowStep(
            name="phone",
            instruction=(
                "Encontré varias inscripciones con ese nombre. "
                "Escribe el número de celular que usaste al inscribirte."
            ),
            extract=lambda text, ctx: extract_phone(text),
        ),
    )

    def after_step(self, step_name: str, fields: Mapping[str, Any], ctx: FlowContext) -> Optional[FlowOutcome]:
        if step_name != "full_name":
            return None

        name = fields["full_name"]
        try:
            leads = ctx.store.find_leads_by_name(name)
        except PersistenceError:
            return _unavailable()

        if not leads:
            return _not_found(name)
        if len(leads) == 1:
            return _found(leads)
        logger.info(f"{len(leads)} leads match name for session {ctx.session_id}; asking for phone")
        return None

    def complete(self, fields: Mapping[str, Any], ctx: FlowContext) -> FlowOutcome:
        name = fields["full_name"]
        try:
            leads = ctx.store.find_leads_by_phone_variants(phone_variants(fields["phone"]), name_filter=name)
        except PersistenceError:
            return _unavailable()

        if not leads:
            return _not_found(name)
        return _found(leads)

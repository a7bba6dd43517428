from dataclasses import replace
from typing import Any, Mapping, Optional

from lyro_api.logging_config import get_logger
from lyro_api.services.errors import PersistenceError
from lyro_api.services.flows.base import Flow, FlowContext, FlowKind, FlowOutcome, FlowStep
from lyro_api.services.flows.schedule import DAY_BAND_STEP, TIME_OF_DAY_STEP, describe_schedule
from lyro_api.services.foundation_knowledge import enrollable_courses, format_course_choices, match_course
from lyro_api.services.replies import SUGGEST_MENU, SUGGEST_VERIFY, BotReply
from lyro_api.services.store import LeadFields
from lyro_api.services.text_utils import extract_full_name, extract_phone

logger = get_logger("flows.enrollment")


def _has_cached_schedule(fields: Mapping[str, Any], ctx: FlowContext) -> bool:
    return ctx.cached_schedule_id is not None


def _extract_course(text: str, ctx: FlowContext) -> Optional[str]:
    course = match_course(text, enrollable_courses())
    return course.name if course else None


COURSE_STEP = FlowStep(
    name="course",
    instruction="¿En qué curso te quieres inscribir? Responde con la letra o escribe el nombre del curso:",
    extract=_extract_course,
    options=lambda ctx: format_course_choices(enrollable_courses()),
)

FULL_NAME_STEP = FlowStep(
    name="full_name",
    instruction="Escribe tu nombre completo.",
    extract=lambda text, ctx: extract_full_name(text),
)

PHONE_STEP = FlowStep(
    name="phone",
    instruction="Escribe tu número de celular (por ejemplo: 0991112233 o +593991112233).",
    extract=lambda text, ctx: extract_phone(text),
)


class EnrollmentFlow(Flow):
    kind = FlowKind.ENROLLMENT
    intro = "📝 ¡Qué bueno que quieras inscribirte!"
    steps = (
        COURSE_STEP,
        replace(TIME_OF_DAY_STEP, skip=_has_cached_schedule),
        replace(DAY_BAND_STEP, skip=_has_cached_schedule),
        FULL_NAME_STEP,
        PHONE_STEP,
    )

    def complete(self, fields: Mapping[str, Any], ctx: FlowContext) -> FlowOutcome:
        schedule_id = ctx.cached_schedule_id
        created_schedule_id = None
        if schedule_id is None and "time_of_day" in fields and "day_band" in fields:
            try:
                created_schedule_id = ctx.store.upsert_schedule_preference(
                    ctx.owner_identity, ctx.session_id, fields["time_of_day"], fields["day_band"]
                )
                schedule_id = created_schedule_id
            except PersistenceError:
                logger.warning(f"Schedule preference not saved for session {ctx.session_id}")

        lead = LeadFields(
            full_name=fields["full_name"],
            phone_number=fields["phone"],
            course_name=fields["course"],
            schedule_preference_id=schedule_id,
        )
        try:
            ctx.store.upsert_lead(ctx.owner_identity, ctx.session_id, lead)
            logger.info(
                "Lead saved",
                extra={"context": {"session_id": ctx.session_id, "course": lead.course_name}},
            )
        except PersistenceError:
            logger.error(f"Lead not saved for session {ctx.session_id}")

        lines = [
            f"🎉 ¡Gracias, {lead.full_name}! Registramos tu interés en *{lead.course_name}*.",
            f"📱 Te contactaremos al {lead.phone_number}.",
        ]
        if "time_of_day" in fields and "day_band" in fields:
            lines.append(f"🕒 Horario preferido: {describe_schedule(fields['time_of_day'], fields['day_band'])}.")
        elif schedule_id is not None:
            lines.append("🕒 Usaremos el horario preferido que ya registraste.")

        reply = BotReply("\n".join(lines), (SUGGEST_VERIFY, SUGGEST_MENU))
        return FlowOutcome(reply, None, schedule_id=created_schedule_id)

from typing import Any, Mapping

from lyro_api.logging_config import get_logger
from lyro_api.services.errors import PersistenceError
from lyro_api.services.flows.base import (
    Choice,
    Flow,
    FlowContext,
    FlowKind,
    FlowOutcome,
    FlowStep,
    choice_options,
    choice_suggestions,
    match_choice,
)
from lyro_api.services.replies import SUGGEST_ENROLL, SUGGEST_MENU, BotReply
from lyro_api.services.text_utils import normalize_for_matching

logger = get_logger("flows.schedule")

TIME_OF_DAY_CHOICES = (
    Choice("morning", "Mañana", ("manana", "en la manana", "por la manana", "am")),
    Choice("afternoon", "Tarde", ("tarde", "en la tarde", "por la tarde", "pm")),
    Choice("evening", "Noche", ("noche", "en la noche", "por la noche")),
)

DAY_BAND_CHOICES = (
    Choice("weekday", "Entre semana (lunes a viernes)", ("entre semana", "lunes a viernes", "semana", "laborables")),
    Choice("weekend", "Fin de semana (sábado y domingo)", ("fin de semana", "fines de semana", "sabado", "domingo")),
)

TIME_OF_DAY_LABELS = {choice.value: choice.label for choice in TIME_OF_DAY_CHOICES}
DAY_BAND_LABELS = {choice.value: choice.label for choice in DAY_BAND_CHOICES}


def extract_time_of_day(text: str, ctx: FlowContext):
    return match_choice(normalize_for_matching(text), TIME_OF_DAY_CHOICES)


def extract_day_band(text: str, ctx: FlowContext):
    normalized = normalize_for_matching(text)
    # "fin de semana" contains "semana", so weekend wins before the generic match
    weekend = DAY_BAND_CHOICES[1]
    if any(alias in normalized for alias in weekend.aliases[:2]):
        return weekend.value
    return match_choice(normalized, DAY_BAND_CHOICES)


TIME_OF_DAY_STEP = FlowStep(
    name="time_of_day",
    instruction="¿En qué horario prefieres tomar tus clases?",
    extract=extract_time_of_day,
    options=lambda ctx: choice_options(TIME_OF_DAY_CHOICES),
    suggestions=choice_suggestions(TIME_OF_DAY_CHOICES),
)

DAY_BAND_STEP = FlowStep(
    name="day_band",
    instruction="¿Qué días te quedan mejor?",
    extract=extract_day_band,
    options=lambda ctx: choice_options(DAY_BAND_CHOICES),
    suggestions=choice_suggestions(DAY_BAND_CHOICES),
)


def describe_schedule(time_of_day: str, day_band: str) -> str:
    return f"{TIME_OF_DAY_LABELS[time_of_day]}, {DAY_BAND_LABELS[day_band].lower()}"


class SchedulePreferenceFlow(Flow):
    kind = FlowKind.SCHEDULE_PREFERENCE
    intro = "🕒 Registremos tu horario preferido."
    steps = (TIME_OF_DAY_STEP, DAY_BAND_STEP)

    def complete(self, fields: Mapping[str, Any], ctx: FlowContext) -> FlowOutcome:
        time_of_day, day_band = fields["time_of_day"], fields["day_band"]
        schedule_id = None
        try:
            schedule_id = ctx.store.upsert_schedule_preference(ctx.owner_identity, ctx.session_id, time_of_day, day_band)
        except PersistenceError:
            logger.warning(f"Schedule preference not saved for session {ctx.session_id}")

        text = (
            f"¡Listo! Guardé tu horario preferido: *{describe_schedule(time_of_day, day_band)}*.\n"
            "¿Te gustaría inscribirte ahora en un curso? Escribe *inscribirme*."
        )
        return FlowOutcome(BotReply(text, (SUGGEST_ENROLL, SUGGEST_MENU)), None, schedule_id=schedule_id)

from dataclasses import dataclass
from typing import Any, Callable, Mapping

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
from lyro_api.services.foundation_knowledge import find_course
from lyro_api.services.replies import SUGGEST_ENROLL, SUGGEST_MENU, BotReply
from lyro_api.services.text_utils import normalize_for_matching

PERSONA_CHOICES = (
    Choice("teacher", "Docente", ("docente", "profesor", "profesora", "maestro", "maestra", "educador", "educadora")),
    Choice("parent", "Madre o padre de familia", ("padre", "madre", "papa", "mama", "representante")),
    Choice("student", "Estudiante", ("estudiante", "alumno", "alumna", "universitario", "universitaria")),
    Choice("professional", "Profesional", ("profesional", "trabajo", "empleado", "emprendedor", "emprendedora")),
)

INTEREST_CHOICES = (
    Choice("soft-skills", "Habilidades blandas", ("habilidades blandas", "blandas", "emociones", "liderazgo", "comunicacion")),
    Choice("technology", "Tecnología", ("tecnologia", "digital", "computacion", "internet")),
    Choice("education", "Educación y docencia", ("educacion", "docencia", "ensenar", "pedagogia")),
)

TIME_BUDGET_CHOICES = (
    Choice("1-2", "1 a 2 horas", ("1 a 2", "1 - 2", "una a dos", "poco")),
    Choice("3-5", "3 a 5 horas", ("3 a 5", "3 - 5", "tres a cinco")),
    Choice("5+", "Más de 5 horas", ("mas de 5", "5 o mas", "5 +", "mucho")),
)


@dataclass(frozen=True)
class AdvisorRule:
    name: str
    applies: Callable[[Mapping[str, Any]], bool]
    course: str
    rationale: str


@dataclass(frozen=True)
class Recommendation:
    course: str
    rationale: str
    rule: str


# Evaluated top to bottom: persona overrides, then interest, then time, then default.
ADVISOR_RULES = (
    AdvisorRule(
        "persona_parent",
        lambda a: a["persona"] == "parent",
        "Tecnología para Padres",
        "Está pensado para familias que quieren acompañar a sus hijos en el mundo digital.",
    ),
    AdvisorRule(
        "persona_teacher",
        lambda a: a["persona"] == "teacher",
        "Tecnología para Educadores",
        "Es gratuito y está diseñado para docentes que quieren llevar la tecnología al aula.",
    ),
    AdvisorRule(
        "interest_soft_skills",
        lambda a: a["interest"] == "soft-skills",
        "Inteligencia Emocional",
        "Fortalece la gestión de emociones, la comunicación y el trabajo en equipo.",
    ),
    AdvisorRule(
        "interest_education",
        lambda a: a["interest"] == "education",
        "Formador de Formadores",
        "Te prepara para diseñar y dictar capacitaciones de alto impacto.",
    ),
    AdvisorRule(
        "time_short",
        lambda a: a["time_budget"] == "1-2",
        "Tecnología para Educadores",
        "Es un curso corto y gratuito que se adapta a poco tiempo disponible.",
    ),
    AdvisorRule(
        "time_long",
        lambda a: a["time_budget"] == "5+",
        "Formador de Formadores",
        "Con más de 5 horas semanales puedes aprovechar nuestro programa más completo.",
    ),
)

DEFAULT_RECOMMENDATION = Recommendation(
    course="Inteligencia Emocional",
    rationale="Es nuestro curso más versátil y útil para cualquier perfil.",
    rule="default",
)


def recommend(answers: Mapping[str, Any]) -> Recommendation:
    for rule in ADVISOR_RULES:
        if rule.applies(answers):
            return Recommendation(course=rule.course, rationale=rule.rationale, rule=rule.name)
    return DEFAULT_RECOMMENDATION


def _closed_step(name: str, instruction: str, choices) -> FlowStep:
    return FlowStep(
        name=name,
        instruction=instruction,
        extract=lambda text, ctx: match_choice(normalize_for_matching(text), choices),
        options=lambda ctx: choice_options(choices),
        suggestions=choice_suggestions(choices),
    )


class AdvisorQuizFlow(Flow):
    kind = FlowKind.ADVISOR_QUIZ
    intro = "🧭 Te ayudo a elegir un curso con tres preguntas rápidas."
    steps = (
        _closed_step("persona", "¿Cuál de estas opciones te describe mejor?", PERSONA_CHOICES),
        _closed_step("interest", "¿Qué área te interesa más?", INTEREST_CHOICES),
        _closed_step("time_budget", "¿Cuántas horas por semana puedes dedicarle?", TIME_BUDGET_CHOICES),
    )

    def complete(self, fields: Mapping[str, Any], ctx: FlowContext) -> FlowOutcome:
        result = recommend(fields)
        course = find_course(result.course)
        price = f" ({course.price_label})" if course else ""
        text = (
            f"✨ Te recomiendo *{result.course}*{price}.\n{result.rationale}\n\n"
            "Si quieres inscribirte escribe *inscribirme*."
        )
        return FlowOutcome(BotReply(text, (SUGGEST_ENROLL, SUGGEST_MENU)), None)

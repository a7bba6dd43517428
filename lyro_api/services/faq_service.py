import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from lyro_api.services.flows import FlowKind
from lyro_api.services.foundation_knowledge import (
    certificate_courses_text,
    contact_text,
    donation_text,
    free_courses_text,
    mission_text,
    teachers_text,
)
from lyro_api.services.replies import (
    SUGGEST_ADVISOR,
    SUGGEST_CERTIFIED_COURSES,
    SUGGEST_ENROLL,
    SUGGEST_FREE_COURSES,
    SUGGEST_MENU,
    BotReply,
)


class GlobalCommand(str, Enum):
    MENU = "menu"  # greetings land here too
    CANCEL = "cancel"


_GREETING = r"(hola+|holi|buenas|buen dia|buenos dias|buenas tardes|buenas noches|hi|hello|hey|saludos)"

GLOBAL_COMMAND_RULES: tuple[tuple[GlobalCommand, tuple[re.Pattern, ...]], ...] = (
    (
        GlobalCommand.CANCEL,
        (re.compile(r"^(cancelar|cancela|cancel|salir|detener|reiniciar)$"),),
    ),
    (
        GlobalCommand.MENU,
        (
            re.compile(rf"^{_GREETING}( {_GREETING}| lyro)*$"),
            re.compile(r"^(menu|menu principal|ver menu|volver al menu|inicio|0)$"),
        ),
    ),
)


@dataclass(frozen=True)
class FaqRule:
    name: str
    patterns: tuple[re.Pattern, ...]
    reply: Optional[Callable[[], BotReply]] = None
    flow: Optional[FlowKind] = None

    def matches(self, normalized: str) -> bool:
        return any(pattern.search(normalized) for pattern in self.patterns)


def _text_reply(render: Callable[[], str], *suggestions) -> Callable[[], BotReply]:
    return lambda: BotReply(render(), tuple(suggestions) + (SUGGEST_MENU,))


def _thanks() -> str:
    return "¡Con gusto! Si necesitas algo más, escribe *menu*."


# Order matters: the first matching rule answers the turn.
FAQ_RULES: tuple[FaqRule, ...] = (
    FaqRule(
        "certificate_status",
        (
            re.compile(r"^(4|estado de certificado)$"),
            re.compile(r"\bestado\b.*\bcertificad"),
            re.compile(r"\b(mi|consultar|revisar) certificado\b"),
        ),
        flow=FlowKind.CERTIFICATE_STATUS,
    ),
    FaqRule(
        "enrollment_verification",
        (
            re.compile(r"^(7|verificar inscripcion)$"),
            re.compile(r"\bverificar\b"),
            re.compile(r"\bestoy inscrit[oa]\b"),
        ),
        flow=FlowKind.ENROLLMENT_VERIFICATION,
    ),
    FaqRule(
        "enrollment",
        (re.compile(r"^(3|inscribirme)$"), re.compile(r"\binscrib"), re.compile(r"\bmatricul")),
        flow=FlowKind.ENROLLMENT,
    ),
    FaqRule(
        "free_courses",
        (re.compile(r"^(1|cursos gratis|cursos gratuitos)$"), re.compile(r"\bgratis\b|\bgratuit")),
        reply=_text_reply(free_courses_text, SUGGEST_ENROLL, SUGGEST_CERTIFIED_COURSES),
    ),
    FaqRule(
        "certified_courses",
        (
            re.compile(r"^(2|cursos con certificado)$"),
            re.compile(r"\bcertificad"),
            re.compile(r"\b(precio|precios|cuesta|cuestan|costo|costos|valor)\b"),
        ),
        reply=_text_reply(certificate_courses_text, SUGGEST_ENROLL, SUGGEST_ADVISOR),
    ),
    FaqRule(
        "schedule_preference",
        (re.compile(r"^(5|horario)$"), re.compile(r"\bhorario")),
        flow=FlowKind.SCHEDULE_PREFERENCE,
    ),
    FaqRule(
        "advisor_quiz",
        (
            re.compile(r"^(6|asesor)$"),
            re.compile(r"\basesor"),
            re.compile(r"\bque curso me (conviene|recomiendas)\b"),
            re.compile(r"\brecomiend"),
        ),
        flow=FlowKind.ADVISOR_QUIZ,
    ),
    FaqRule(
        "donations",
        (re.compile(r"^(8|donar)$"), re.compile(r"\bdon(ar|acion|aciones|ativo)\b")),
        reply=_text_reply(donation_text),
    ),
    FaqRule(
        "contact",
        (
            re.compile(r"^(9|contacto)$"),
            re.compile(r"\bcontact"),
            re.compile(r"\b(telefono|celular|correo|email|whatsapp|wasap)\b"),
            re.compile(r"\b(ubicacion|direccion|donde (estan|quedan|se encuentran))\b"),
        ),
        reply=_text_reply(contact_text),
    ),
    FaqRule(
        "teachers",
        (re.compile(r"\b(docentes|profesores|profesoras|instructores|instructoras|quienes dictan)\b"),),
        reply=_text_reply(teachers_text, SUGGEST_CERTIFIED_COURSES, SUGGEST_FREE_COURSES),
    ),
    FaqRule(
        "mission",
        (re.compile(r"\b(mision|que es la fundacion|quienes son|que hacen)\b"),),
        reply=_text_reply(mission_text, SUGGEST_FREE_COURSES, SUGGEST_CERTIFIED_COURSES),
    ),
    FaqRule(
        "thanks",
        (re.compile(r"^(gracias|muchas gracias|ok gracias|mil gracias)$"),),
        reply=_text_reply(_thanks),
    ),
)


def match_global_command(normalized: str) -> Optional[GlobalCommand]:
    if not normalized:
        return None
    for command, patterns in GLOBAL_COMMAND_RULES:
        if any(pattern.search(normalized) for pattern in patterns):
            return command
    return None


def match_faq(normalized: str) -> Optional[FaqRule]:
    if not normalized:
        return None
    for rule in FAQ_RULES:
        if rule.matches(normalized):
            return rule
    return None

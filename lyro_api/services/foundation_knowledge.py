from __future__ import annotations

import difflib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import yaml

from lyro_api.logging_config import get_logger
from lyro_api.services.text_utils import extract_letter_choice, normalize_for_matching, option_letters

_KNOWLEDGE_DIR = Path(__file__).resolve().parents[1] / "knowledge"
_TRUTH_PATH = _KNOWLEDGE_DIR / "foundation.yaml"

_FUZZY_CUTOFF = 0.6
_MIN_FUZZY_CHARS = 3

logger = get_logger("foundation_knowledge")


@dataclass(frozen=True)
class Course:
    name: str
    price: int
    instructor: str
    certificate: bool
    available: bool
    area: str

    @property
    def normalized_name(self) -> str:
        return normalize_for_matching(self.name)

    @property
    def price_label(self) -> str:
        return "Gratis" if not self.price else f"${self.price}"

    @property
    def status_label(self) -> str:
        return "" if self.available else " (Próximamente)"


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Knowledge file {path} must contain a mapping")
    return data


@lru_cache(maxsize=1)
def load_foundation_truth() -> dict[str, Any]:
    data = _load_yaml(_TRUTH_PATH)
    logger.debug(f"Loaded foundation knowledge: {len(data.get('courses') or [])} courses")
    return data


@lru_cache(maxsize=1)
def list_courses() -> tuple[Course, ...]:
    courses = []
    for raw in load_foundation_truth().get("courses") or []:
        courses.append(
            Course(
                name=str(raw["name"]),
                price=int(raw.get("price") or 0),
                instructor=str(raw.get("instructor") or ""),
                certificate=bool(raw.get("certificate")),
                available=bool(raw.get("available", True)),
                area=str(raw.get("area") or ""),
            )
        )
    return tuple(courses)


def certificate_courses() -> list[Course]:
    return [course for course in list_courses() if course.certificate]


def free_courses() -> list[Course]:
    return [course for course in list_courses() if not course.price]


def enrollable_courses() -> list[Course]:
    """Open courses sorted by normalized name; letter A is always the first of this list."""
    available = [course for course in list_courses() if course.available]
    return sorted(available, key=lambda course: course.normalized_name)


def find_course(name: str) -> Optional[Course]:
    target = normalize_for_matching(name)
    for course in list_courses():
        if course.normalized_name == target:
            return course
    return None


def format_course_choices(courses: Sequence[Course]) -> str:
    lines = []
    for letter, course in zip(option_letters(len(courses)), courses):
        lines.append(f"{letter}) {course.name} ({course.price_label})")
    return "\n".join(lines)


def match_course(text: str, courses: Sequence[Course]) -> Optional[Course]:
    """Resolve a letter ("b") or a fuzzy course name against the presented list."""
    index = extract_letter_choice(text, len(courses))
    if index is not None:
        return courses[index]

    normalized = normalize_for_matching(text)
    if len(normalized) < _MIN_FUZZY_CHARS:
        return None

    containing = [
        course
        for course in courses
        if normalized in course.normalized_name or course.normalized_name in normalized
    ]
    if len(containing) > 1:
        # "tecnologia" names two courses; make the caller ask again
        return None
    if containing:
        return containing[0]

    names = [course.normalized_name for course in courses]
    close = difflib.get_close_matches(normalized, names, n=1, cutoff=_FUZZY_CUTOFF)
    if close:
        return courses[names.index(close[0])]
    return None


def _bullets(items: Iterable[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def certificate_courses_text() -> str:
    lines = [
        f"{course.name}{course.status_label}: {course.price_label}, con {course.instructor}"
        for course in certificate_courses()
    ]
    return "🎓 *Cursos con certificado*\n" + _bullets(lines)


def free_courses_text() -> str:
    lines = [f"{course.name}{course.status_label}, con {course.instructor}" for course in free_courses()]
    return "🆓 *Cursos gratuitos*\n" + _bullets(lines)


def teachers_text() -> str:
    teachers = load_foundation_truth().get("teachers") or []
    return "👩‍🏫 *Nuestros docentes*\n" + _bullets(teachers)


def contact_text() -> str:
    contact = load_foundation_truth().get("contact") or {}
    return (
        "📞 *Contacto*\n"
        f"• Celular: {contact.get('phone', '')}\n"
        f"• Correo: {contact.get('email', '')}\n"
        f"• Ubicación: {contact.get('location', '')}"
    )


def donation_text() -> str:
    steps = load_foundation_truth().get("donation_steps") or []
    numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))
    return "💛 *¿Cómo donar?*\n" + numbered


def mission_text() -> str:
    truth = load_foundation_truth()
    return f"🌱 *{truth.get('foundation', '')}*\n{truth.get('mission', '')}\nMás información: {truth.get('website', '')}"


def build_system_prompt() -> str:
    """Briefing for the generative model, rendered from the same knowledge file."""
    truth = load_foundation_truth()
    contact = truth.get("contact") or {}

    certified = [
        f"    - {c.name}{c.status_label} ({c.price_label}): Impartido por {c.instructor}."
        for c in certificate_courses()
    ]
    free = [f"    - {c.name}{c.status_label}: Impartido por {c.instructor}." for c in free_courses()]
    steps = [f"    {i}. {step}" for i, step in enumerate(truth.get("donation_steps") or [], start=1)]

    return "\n".join(
        [
            f"Eres {truth.get('assistant_name', 'Lyro')}, un asistente virtual amable y servicial. "
            f"Tu objetivo es proporcionar información precisa, completa y concisa sobre la "
            f"{truth.get('foundation', '')} ({truth.get('website', '')}) y sus actividades, además de "
            "responder preguntas de conocimiento general.",
            "",
            "Utiliza la siguiente información para las consultas sobre la Fundación:",
            f"- Misión Principal: {truth.get('mission', '')}",
            "- Cursos con Certificado (Costo e Instructor):",
            *certified,
            "- Cursos Gratuitos (Instructor):",
            *free,
            f"- Docentes: {', '.join(truth.get('teachers') or [])}.",
            "- Contacto:",
            f"    - Celular: {contact.get('phone', '')}",
            f"    - Correo: {contact.get('email', '')}",
            f"    - Ubicación: {contact.get('location', '')}",
            "- Donaciones (Guía Paso a Paso):",
            *steps,
            "",
            "Si la pregunta no es sobre la Fundación, usa tu conocimiento general. "
            "Responde siempre en español y en menos de 120 palabras.",
        ]
    )

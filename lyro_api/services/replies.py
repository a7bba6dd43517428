from dataclasses import dataclass, field


@dataclass(frozen=True)
class Suggestion:
    value: str
    label: str


@dataclass(frozen=True)
class BotReply:
    text: str
    suggestions: tuple[Suggestion, ...] = field(default_factory=tuple)

    def with_prefix(self, prefix: str) -> "BotReply":
        if not prefix:
            return self
        return BotReply(text=f"{prefix}\n\n{self.text}", suggestions=self.suggestions)


SUGGEST_MENU = Suggestion("menu", "🏠 Menú")
SUGGEST_CANCEL = Suggestion("cancelar", "✖️ Cancelar")
SUGGEST_FREE_COURSES = Suggestion("cursos gratis", "🆓 Cursos gratuitos")
SUGGEST_CERTIFIED_COURSES = Suggestion("cursos con certificado", "🎓 Cursos con certificado")
SUGGEST_ENROLL = Suggestion("inscribirme", "📝 Inscribirme")
SUGGEST_CERTIFICATE_STATUS = Suggestion("estado de certificado", "📄 Estado de certificado")
SUGGEST_SCHEDULE = Suggestion("horario", "🕒 Horario preferido")
SUGGEST_ADVISOR = Suggestion("asesor", "🧭 ¿Qué curso me conviene?")
SUGGEST_VERIFY = Suggestion("verificar inscripcion", "🔎 Verificar inscripción")
SUGGEST_DONATE = Suggestion("donar", "💛 Donaciones")
SUGGEST_CONTACT = Suggestion("contacto", "📞 Contacto")

MAIN_MENU_SUGGESTIONS = (
    SUGGEST_FREE_COURSES,
    SUGGEST_CERTIFIED_COURSES,
    SUGGEST_ENROLL,
    SUGGEST_CERTIFICATE_STATUS,
    SUGGEST_SCHEDULE,
    SUGGEST_ADVISOR,
    SUGGEST_VERIFY,
    SUGGEST_DONATE,
    SUGGEST_CONTACT,
)

MAIN_MENU_TEXT = (
    "¡Hola! Soy Lyro, el asistente virtual de la Fundación Capacítamente. 👋\n"
    "Elige una opción escribiendo su número:\n"
    "1️⃣ Cursos gratuitos\n"
    "2️⃣ Cursos con certificado\n"
    "3️⃣ Inscribirme en un curso\n"
    "4️⃣ Consultar el estado de mi certificado\n"
    "5️⃣ Registrar mi horario preferido\n"
    "6️⃣ ¿Qué curso me conviene?\n"
    "7️⃣ Verificar mi inscripción\n"
    "8️⃣ Donaciones\n"
    "9️⃣ Contacto\n\n"
    "Escribe *menu* en cualquier momento para volver aquí o *cancelar* para salir de un proceso."
)

CANCEL_TEXT = "Listo, cancelé el proceso en curso. ¿En qué más te puedo ayudar?"

NEUTRAL_FALLBACK_TEXT = (
    "En este momento no puedo responder esa consulta. "
    "Escribe *menu* para ver las opciones disponibles."
)

INTERNAL_ERROR_TEXT = "Lo siento, hubo un error interno. Intenta de nuevo más tarde."


def main_menu() -> BotReply:
    return BotReply(MAIN_MENU_TEXT, MAIN_MENU_SUGGESTIONS)


def cancelled() -> BotReply:
    return BotReply(CANCEL_TEXT, (SUGGEST_MENU,) + MAIN_MENU_SUGGESTIONS[:3])


def neutral_fallback() -> BotReply:
    return BotReply(NEUTRAL_FALLBACK_TEXT, (SUGGEST_MENU,))


def internal_error() -> BotReply:
    return BotReply(INTERNAL_ERROR_TEXT, (SUGGEST_MENU,))

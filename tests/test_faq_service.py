import pytest

from lyro_api.services.faq_service import GlobalCommand, match_faq, match_global_command
from lyro_api.services.flows import FlowKind
from lyro_api.services.replies import SUGGEST_ENROLL
from lyro_api.services.text_utils import normalize_for_matching


def _faq(text):
    return match_faq(normalize_for_matching(text))


class TestGlobalCommands:
    @pytest.mark.parametrize("text", ["hola", "Hola Lyro!", "buenas tardes", "Menú", "0", "volver al menu"])
    def test_menu(self, text):
        assert match_global_command(normalize_for_matching(text)) == GlobalCommand.MENU

    @pytest.mark.parametrize("text", ["cancelar", "Salir", "CANCEL"])
    def test_cancel(self, text):
        assert match_global_command(normalize_for_matching(text)) == GlobalCommand.CANCEL

    @pytest.mark.parametrize("text", ["hola quiero inscribirme", "no quiero cancelar nada", "2", ""])
    def test_not_a_command(self, text):
        assert match_global_command(normalize_for_matching(text)) is None


class TestFaqTable:
    @pytest.mark.parametrize(
        "text,rule",
        [
            ("1", "free_courses"),
            ("2", "certified_courses"),
            ("cursos con certificado", "certified_courses"),
            ("¿Cuánto cuesta el curso?", "certified_courses"),
            ("quiero ver el estado de mi certificado", "certificate_status"),
            ("verificar inscripción", "enrollment_verification"),
            ("quiero inscribirme", "enrollment"),
            ("5", "schedule_preference"),
            ("¿Qué curso me recomiendas?", "advisor_quiz"),
            ("como puedo donar", "donations"),
            ("cual es su telefono", "contact"),
            ("quienes son los profesores", "teachers"),
            ("que es la fundacion", "mission"),
            ("muchas gracias", "thanks"),
        ],
    )
    def test_first_match(self, text, rule):
        matched = _faq(text)
        assert matched is not None
        assert matched.name == rule

    def test_no_match(self):
        assert _faq("cual es la capital de francia") is None

    def test_flow_rules_carry_flow_kind(self):
        assert _faq("3").flow == FlowKind.ENROLLMENT
        assert _faq("4").flow == FlowKind.CERTIFICATE_STATUS

    def test_certified_courses_reply_offers_enrollment(self):
        reply = _faq("2").reply()
        assert reply.text.startswith("🎓 *Cursos con certificado*")
        assert SUGGEST_ENROLL in reply.suggestions

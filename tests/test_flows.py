from datetime import datetime, timezone

import pytest

from lyro_api.models import CertificateRecord, Lead, SchedulePreference
from lyro_api.services.flows import (
    AdvisorQuizFlow,
    CertificateStatusFlow,
    EnrollmentFlow,
    EnrollmentVerificationFlow,
    FlowContext,
    FlowKind,
    FlowState,
    SchedulePreferenceFlow,
    recommend,
)
from lyro_api.services.flows.schedule import DAY_BAND_STEP
from lyro_api.services.replies import SUGGEST_ENROLL
from lyro_api.services.store import LeadFields

OWNER = "tok:alumna"
SESSION = "s-flows"


@pytest.fixture
def ctx(store):
    return FlowContext(session_id=SESSION, owner_identity=OWNER, store=store)


def _run(flow, ctx, *answers):
    outcome = flow.start(ctx)
    for answer in answers:
        assert outcome.state is not None, f"flow finished before {answer!r}"
        outcome = flow.advance(outcome.state, answer, ctx)
    return outcome


class TestInvalidInput:
    def test_rejection_keeps_state_and_fields(self, ctx):
        flow = EnrollmentFlow()
        state = FlowState(FlowKind.ENROLLMENT, "day_band", {"course": "Inteligencia Emocional", "time_of_day": "morning"})

        outcome = flow.advance(state, "cuando pueda", ctx)

        assert outcome.state is state
        assert outcome.state.step == "day_band"
        assert dict(outcome.state.fields) == {"course": "Inteligencia Emocional", "time_of_day": "morning"}
        assert outcome.reply.text.startswith("⚠️ No entendí tu respuesta.")
        assert DAY_BAND_STEP.instruction in outcome.reply.text

    def test_phone_rejected_once_then_accepted(self, ctx):
        flow = EnrollmentFlow()
        outcome = _run(flow, ctx, "a", "1", "1", "Ana Pérez", "no tengo")
        assert outcome.state.step == "phone"
        assert outcome.state.fields["full_name"] == "Ana Pérez"

        outcome = flow.advance(outcome.state, "0991112233", ctx)
        assert outcome.finished


class TestCertificateStatusFlow:
    def test_ready_certificate(self, ctx, db_session):
        db_session.add(
            CertificateRecord(
                order_code="9039",
                course_name="Inteligencia Emocional",
                status="ready",
                last_updated=datetime(2024, 5, 10, 15, 30, tzinfo=timezone.utc),
            )
        )
        db_session.commit()

        outcome = _run(CertificateStatusFlow(), ctx, "mi código es 9039", "Emocional")

        assert outcome.finished
        assert "está listo" in outcome.reply.text
        assert "Inteligencia Emocional" in outcome.reply.text
        assert "10/05/2024 10:30" in outcome.reply.text

    def test_in_progress_status_alias(self, ctx, db_session):
        db_session.add(CertificateRecord(order_code="1234", course_name="Formador de Formadores", status="en proceso"))
        db_session.commit()

        outcome = _run(CertificateStatusFlow(), ctx, "1234", "formador")

        assert "está en proceso" in outcome.reply.text
        assert "sin fecha registrada" in outcome.reply.text

    def test_not_found_includes_contact(self, ctx):
        outcome = _run(CertificateStatusFlow(), ctx, "1111", "Emocional")

        assert outcome.finished
        assert "No encontré un certificado" in outcome.reply.text
        assert "0983222358" in outcome.reply.text

    def test_order_code_must_have_four_digits(self, ctx):
        flow = CertificateStatusFlow()
        start = flow.start(ctx)
        outcome = flow.advance(start.state, "123", ctx)
        assert outcome.state is start.state


class TestSchedulePreferenceFlow:
    def test_persists_and_returns_id(self, ctx, db_session):
        outcome = _run(SchedulePreferenceFlow(), ctx, "por la tarde", "fin de semana")

        assert outcome.finished
        assert outcome.schedule_id
        assert SUGGEST_ENROLL in outcome.reply.suggestions
        saved = db_session.get(SchedulePreference, outcome.schedule_id)
        assert saved.time_of_day == "afternoon"
        assert saved.day_band == "weekend"

    def test_numbered_answers(self, ctx):
        outcome = _run(SchedulePreferenceFlow(), ctx, "3", "1")
        assert "Noche, entre semana" in outcome.reply.text


class TestEnrollmentFlow:
    def test_letter_selects_sorted_course(self, ctx):
        outcome = _run(EnrollmentFlow(), ctx, "b")
        assert outcome.state.fields["course"] == "Inteligencia Emocional"
        assert outcome.state.step == "time_of_day"

    def test_ambiguous_course_name_reprompts(self, ctx):
        flow = EnrollmentFlow()
        start = flow.start(ctx)

        outcome = flow.advance(start.state, "tecnologia", ctx)

        assert outcome.state is start.state
        assert outcome.state.step == "course"
        assert outcome.reply.text.startswith("⚠️ No entendí tu respuesta.")

    def test_cached_schedule_skips_time_steps(self, store):
        ctx = FlowContext(SESSION, OWNER, store, cached_schedule_id="sched-1")
        outcome = _run(EnrollmentFlow(), ctx, "b")
        assert outcome.state.step == "full_name"

    def test_lead_references_cached_schedule(self, store, db_session):
        ctx = FlowContext(SESSION, OWNER, store, cached_schedule_id="sched-1")
        outcome = _run(EnrollmentFlow(), ctx, "b", "Ana Pérez", "mi wasap es 0991112233 llamame")

        assert outcome.finished
        assert outcome.schedule_id is None
        lead = db_session.query(Lead).one()
        assert lead.course_name == "Inteligencia Emocional"
        assert lead.phone_number == "0991112233"
        assert lead.schedule_preference_id == "sched-1"

    def test_creates_schedule_when_none_cached(self, ctx, db_session):
        outcome = _run(EnrollmentFlow(), ctx, "tecnologia para padres", "mañana", "entre semana", "Luis Mora", "+593987654321")

        assert outcome.finished
        assert outcome.schedule_id is not None
        lead = db_session.query(Lead).one()
        assert lead.schedule_preference_id == outcome.schedule_id
        assert lead.course_name == "Tecnología para Padres"

    def test_no_lead_until_terminal_step(self, ctx, db_session):
        _run(EnrollmentFlow(), ctx, "a", "1", "2", "Ana Pérez")
        assert db_session.query(Lead).count() == 0


class TestAdvisorQuiz:
    @pytest.mark.parametrize(
        "answers,course,rule",
        [
            ({"persona": "parent", "interest": "technology", "time_budget": "5+"}, "Tecnología para Padres", "persona_parent"),
            ({"persona": "teacher", "interest": "soft-skills", "time_budget": "3-5"}, "Tecnología para Educadores", "persona_teacher"),
            ({"persona": "student", "interest": "soft-skills", "time_budget": "5+"}, "Inteligencia Emocional", "interest_soft_skills"),
            ({"persona": "professional", "interest": "education", "time_budget": "1-2"}, "Formador de Formadores", "interest_education"),
            ({"persona": "student", "interest": "technology", "time_budget": "1-2"}, "Tecnología para Educadores", "time_short"),
            ({"persona": "student", "interest": "technology", "time_budget": "5+"}, "Formador de Formadores", "time_long"),
            ({"persona": "student", "interest": "technology", "time_budget": "3-5"}, "Inteligencia Emocional", "default"),
        ],
    )
    def test_rule_priority(self, answers, course, rule):
        result = recommend(answers)
        assert result.course == course
        assert result.rule == rule

    def test_full_quiz(self, ctx):
        outcome = _run(AdvisorQuizFlow(), ctx, "soy mama", "tecnologia", "3")
        assert outcome.finished
        assert "Tecnología para Padres" in outcome.reply.text
        assert "($15)" in outcome.reply.text

    def test_out_of_range_option_rejected(self, ctx):
        flow = AdvisorQuizFlow()
        start = flow.start(ctx)
        outcome = flow.advance(start.state, "7", ctx)
        assert outcome.state is start.state


class TestEnrollmentVerification:
    def _lead(self, store, name, phone, course="Inteligencia Emocional"):
        store.upsert_lead("tok:otro", "s-otro", LeadFields(full_name=name, phone_number=phone, course_name=course))

    def test_not_found_offers_enrollment(self, ctx):
        outcome = _run(EnrollmentVerificationFlow(), ctx, "Nadie Registrado")
        assert outcome.finished
        assert "No encontré ninguna inscripción" in outcome.reply.text
        assert SUGGEST_ENROLL in outcome.reply.suggestions

    def test_single_match_reported(self, ctx, store):
        self._lead(store, "Ana Pérez", "0991112233")
        outcome = _run(EnrollmentVerificationFlow(), ctx, "ana perez")
        assert outcome.finished
        assert "Encontré tu inscripción" in outcome.reply.text
        assert "Inteligencia Emocional" in outcome.reply.text

    def test_multiple_matches_disambiguated_by_phone(self, ctx, store):
        self._lead(store, "Ana Pérez", "0991112233", course="Formador de Formadores")
        self._lead(store, "Ana Pérez Gómez", "+593987654321", course="Tecnología para Padres")

        outcome = _run(EnrollmentVerificationFlow(), ctx, "Ana Perez")
        assert outcome.state is not None
        assert outcome.state.step == "phone"

        outcome = EnrollmentVerificationFlow().advance(outcome.state, "0987654321", ctx)
        assert outcome.finished
        assert "Tecnología para Padres" in outcome.reply.text
        assert "Formador de Formadores" not in outcome.reply.text

from lyro_api.services.flows.advisor import AdvisorQuizFlow, recommend
from lyro_api.services.flows.base import (
    Flow,
    FlowContext,
    FlowKind,
    FlowOutcome,
    FlowState,
    FlowStateStore,
    FlowStep,
    UnknownStepError,
)
from lyro_api.services.flows.certificate import CertificateStatusFlow
from lyro_api.services.flows.enrollment import EnrollmentFlow
from lyro_api.services.flows.schedule import SchedulePreferenceFlow
from lyro_api.services.flows.verification import EnrollmentVerificationFlow

FLOWS: dict[FlowKind, Flow] = {
    FlowKind.CERTIFICATE_STATUS: CertificateStatusFlow(),
    FlowKind.SCHEDULE_PREFERENCE: SchedulePreferenceFlow(),
    FlowKind.ENROLLMENT: EnrollmentFlow(),
    FlowKind.ADVISOR_QUIZ: AdvisorQuizFlow(),
    FlowKind.ENROLLMENT_VERIFICATION: EnrollmentVerificationFlow(),
}


__all__ = [
    "FLOWS",
    "recommend",
    "Flow",
    "FlowContext",
    "FlowKind",
    "FlowOutcome",
    "FlowState",
    "FlowStateStore",
    "FlowStep",
    "UnknownStepError",
    "AdvisorQuizFlow",
    "CertificateStatusFlow",
    "EnrollmentFlow",
    "EnrollmentVerificationFlow",
    "SchedulePreferenceFlow",
]

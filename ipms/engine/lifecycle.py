"""Practice state machine - the single guard table consulted by every transition."""

from dataclasses import dataclass
from enum import Enum

from ipms.errors import InvalidStateTransition, Unauthorized
from ipms.schemas.common import Identity, PracticeState, Role


class Event(str, Enum):
    ASSIGN_SUPERVISOR = "assign_supervisor"
    ACCEPT = "accept_by_supervisor"
    DECLINE = "decline_by_supervisor"
    SUBMIT_REPORT = "submit_report"
    RECORD_EMPLOYER_EVALUATION = "record_employer_evaluation"
    RECORD_REPORT_EVALUATION = "record_report_evaluation"
    COMPLETE_EVALUATION = "complete_evaluation"
    CLOSE = "close"


class Relation(str, Enum):
    """How the caller must relate to the practice, on top of the role check."""

    SCOPE_OWNER = "scope_owner"
    ASSIGNED_SUPERVISOR = "assigned_supervisor"
    STUDENT_OWNER = "student_owner"
    HOST_EMPLOYER = "host_employer"
    SYSTEM = "system"


@dataclass(frozen=True)
class Guard:
    roles: frozenset[Role]
    relation: Relation


@dataclass(frozen=True)
class Transition:
    source: PracticeState
    event: Event
    guard: Guard
    target: PracticeState


_COORDINATION = frozenset({Role.COORDINATOR, Role.SUPER_ADMIN})
_SUPERVISOR = frozenset({Role.SUPERVISOR})

CREATE_GUARD = Guard(_COORDINATION, Relation.SCOPE_OWNER)

_S = PracticeState
TRANSITIONS: dict[tuple[PracticeState, Event], Transition] = {
    (t.source, t.event): t
    for t in (
        Transition(
            _S.PENDIENTE,
            Event.ASSIGN_SUPERVISOR,
            Guard(_COORDINATION, Relation.SCOPE_OWNER),
            _S.PENDIENTE_ACEPTACION_DOCENTE,
        ),
        Transition(
            _S.PENDIENTE_ACEPTACION_DOCENTE,
            Event.ACCEPT,
            Guard(_SUPERVISOR, Relation.ASSIGNED_SUPERVISOR),
            _S.EN_CURSO,
        ),
        Transition(
            _S.PENDIENTE_ACEPTACION_DOCENTE,
            Event.DECLINE,
            Guard(_SUPERVISOR, Relation.ASSIGNED_SUPERVISOR),
            _S.PENDIENTE,
        ),
        Transition(
            _S.EN_CURSO,
            Event.SUBMIT_REPORT,
            Guard(frozenset({Role.STUDENT}), Relation.STUDENT_OWNER),
            _S.FINALIZADA_PENDIENTE_EVAL,
        ),
        Transition(
            _S.FINALIZADA_PENDIENTE_EVAL,
            Event.RECORD_EMPLOYER_EVALUATION,
            Guard(frozenset({Role.EMPLOYER}), Relation.HOST_EMPLOYER),
            _S.FINALIZADA_PENDIENTE_EVAL,
        ),
        Transition(
            _S.FINALIZADA_PENDIENTE_EVAL,
            Event.RECORD_REPORT_EVALUATION,
            Guard(_SUPERVISOR, Relation.ASSIGNED_SUPERVISOR),
            _S.FINALIZADA_PENDIENTE_EVAL,
        ),
        Transition(
            _S.FINALIZADA_PENDIENTE_EVAL,
            Event.COMPLETE_EVALUATION,
            Guard(frozenset(), Relation.SYSTEM),
            _S.EVALUACION_COMPLETA,
        ),
        Transition(
            _S.EVALUACION_COMPLETA,
            Event.CLOSE,
            Guard(_COORDINATION, Relation.SCOPE_OWNER),
            _S.CERRADA,
        ),
    )
}


def resolve(state: str | PracticeState, event: Event) -> Transition:
    """Look up the transition for (state, event) or raise InvalidStateTransition."""
    current = PracticeState(state)
    transition = TRANSITIONS.get((current, event))
    if transition is None:
        raise InvalidStateTransition(current.value, event.value)
    return transition


def in_scope(caller: Identity, campus_id: int | None, program_id: int | None) -> bool:
    """Whether the caller administers the given campus/program."""
    if caller.role is Role.SUPER_ADMIN:
        return True
    if caller.scope_id is None:
        return False
    if caller.role is Role.COORDINATOR:
        return campus_id == caller.scope_id
    if caller.role is Role.PROGRAM_DIRECTOR:
        return program_id == caller.scope_id
    return False


def check_guard(guard: Guard, caller: Identity | None, practice) -> None:
    """Raise Unauthorized unless the caller satisfies the guard for this practice.

    ``practice`` is anything exposing the Practice attributes the relations read.
    """
    if guard.relation is Relation.SYSTEM:
        if caller is not None:
            raise Unauthorized("Transition is system-triggered only")
        return
    if caller is None:
        raise Unauthorized("Transition requires a caller")
    if caller.role not in guard.roles:
        raise Unauthorized(
            f"Role {caller.role.value} may not perform this operation",
            extra={"role": caller.role.value},
        )

    if guard.relation is Relation.SCOPE_OWNER:
        allowed = in_scope(caller, practice.campus_id, practice.program_id)
    elif guard.relation is Relation.ASSIGNED_SUPERVISOR:
        allowed = practice.supervisor_id is not None and practice.supervisor_id == caller.user_id
    elif guard.relation is Relation.STUDENT_OWNER:
        allowed = practice.student_id == caller.user_id
    elif guard.relation is Relation.HOST_EMPLOYER:
        allowed = (
            practice.host_organization_id is not None
            and practice.host_organization_id == caller.scope_id
        )
    else:
        allowed = False

    if not allowed:
        raise Unauthorized(
            f"Caller is not the {guard.relation.value.replace('_', ' ')} of this practice",
            extra={"relation": guard.relation.value},
        )


def authorize(state: str | PracticeState, event: Event, caller: Identity | None, practice) -> Transition:
    """State legality first, then the caller guard."""
    transition = resolve(state, event)
    check_guard(transition.guard, caller, practice)
    return transition

"""Domain errors raised by the lifecycle, scoring, alerting and audit layers.

Every error carries a stable ``error_code`` and the HTTP status the API maps it
to. The services never catch these; they surface to the caller verbatim.
"""

from typing import Any


class IPMSError(Exception):
    """Base class for all service errors."""

    error_code = "internal_error"
    status_code = 500

    def __init__(self, message: str, extra: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class Unauthorized(IPMSError):
    """Caller role or relation does not satisfy the guard."""

    error_code = "unauthorized"
    status_code = 403


class NotFound(IPMSError):
    """Referenced entity does not exist."""

    error_code = "not_found"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class PracticeNotFound(NotFound):
    def __init__(self, practice_id: int):
        super().__init__("Practice", practice_id)


class InvalidStateTransition(IPMSError):
    """Requested event is not legal from the current state."""

    error_code = "invalid_state_transition"
    status_code = 409

    def __init__(self, current_state: str, requested: str, reason: str | None = None):
        message = f"Cannot apply '{requested}' to a practice in state {current_state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            extra={"current_state": current_state, "requested": requested},
        )
        self.current_state = current_state
        self.requested = requested


class PrematureClose(InvalidStateTransition):
    """Close requested before both evaluations are complete."""

    error_code = "premature_close"

    def __init__(self, current_state: str):
        super().__init__(
            current_state,
            "close",
            reason="practice can only be closed from EVALUACION_COMPLETA",
        )


class ConcurrentModification(IPMSError):
    """Compare-and-set on a record found a different state than expected."""

    error_code = "concurrent_modification"
    status_code = 409

    def __init__(self, entity_type: str, entity_id: Any, expected: str):
        super().__init__(
            f"{entity_type} {entity_id} changed concurrently (expected {expected}); re-read and retry",
            extra={"entity_type": entity_type, "entity_id": str(entity_id), "expected": expected},
        )


class ValidationError(IPMSError):
    """Malformed or out-of-range input."""

    error_code = "validation_error"
    status_code = 422


class IncompleteCriteria(ValidationError):
    error_code = "incomplete_criteria"

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Missing criteria: {', '.join(missing)}",
            extra={"missing": missing},
        )


class ScoreOutOfRange(ValidationError):
    error_code = "score_out_of_range"


class InvalidPolicy(ValidationError):
    error_code = "invalid_policy"


class DuplicateAlert(ValidationError):
    error_code = "duplicate_alert"


class PersistenceError(IPMSError):
    """Record store failure."""

    error_code = "persistence_error"
    status_code = 503


class ScoringInvariantError(IPMSError):
    """A computed grade fell outside the grade scale."""

    error_code = "scoring_invariant_violation"
    status_code = 500

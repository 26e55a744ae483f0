"""Evaluation scoring engine - pure, deterministic grade computation."""

from decimal import ROUND_HALF_UP, Decimal

from ipms.errors import (
    IncompleteCriteria,
    InvalidPolicy,
    ScoreOutOfRange,
    ScoringInvariantError,
    ValidationError,
)
from ipms.schemas.evaluation import Criterion, CriterionScore
from ipms.schemas.policy import WeightPolicy

MIN_SCORE = 1
MAX_SCORE = 7

# Employer criterion catalog; weights sum to 100.
EMPLOYER_CRITERIA: tuple[Criterion, ...] = (
    Criterion(
        id="puntualidad",
        name="Puntualidad y Asistencia",
        description="Cumple con horarios establecidos y presenta bajo ausentismo",
        weight=15,
    ),
    Criterion(
        id="responsabilidad",
        name="Responsabilidad",
        description="Cumple con las tareas asignadas en tiempo y forma",
        weight=20,
    ),
    Criterion(
        id="iniciativa",
        name="Iniciativa y Proactividad",
        description="Propone mejoras y actúa de manera proactiva",
        weight=15,
    ),
    Criterion(
        id="trabajo_equipo",
        name="Trabajo en Equipo",
        description="Se integra bien al equipo y colabora efectivamente",
        weight=15,
    ),
    Criterion(
        id="comunicacion",
        name="Comunicación",
        description="Se comunica de manera clara y efectiva",
        weight=10,
    ),
    Criterion(
        id="conocimientos",
        name="Aplicación de Conocimientos",
        description="Aplica conocimientos académicos en el trabajo práctico",
        weight=15,
    ),
    Criterion(
        id="adaptabilidad",
        name="Adaptabilidad",
        description="Se adapta a cambios y nuevas situaciones",
        weight=10,
    ),
)

# Report rubric used by supervisors; unweighted mean.
REPORT_RUBRIC: tuple[Criterion, ...] = (
    Criterion(id="claridad_objetivos", name="Claridad de objetivos"),
    Criterion(id="fundamentacion_teorica", name="Fundamentación teórica"),
    Criterion(id="metodologia_aplicada", name="Metodología aplicada"),
    Criterion(id="analisis_resultados", name="Análisis de resultados"),
    Criterion(id="conclusiones_recomendaciones", name="Conclusiones y recomendaciones"),
    Criterion(id="calidad_redaccion", name="Calidad de redacción"),
    Criterion(id="presentacion_formato", name="Presentación y formato"),
)

_CENTS = Decimal("0.01")


def _round2(value: Decimal) -> float:
    return float(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


def _check_criterion_score(criterion_id: str, score) -> None:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ScoreOutOfRange(
            f"Score for '{criterion_id}' must be an integer between {MIN_SCORE} and {MAX_SCORE}",
            extra={"criterion_id": criterion_id, "score": score},
        )
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ScoreOutOfRange(
            f"Score for '{criterion_id}' is {score}; allowed range is {MIN_SCORE}-{MAX_SCORE}",
            extra={"criterion_id": criterion_id, "score": score},
        )


def _index_scores(
    scores: list[tuple[str, int]], catalog: tuple[Criterion, ...]
) -> dict[str, int]:
    """Map criterion id -> score, rejecting unknown, duplicate and missing entries."""
    known = {c.id for c in catalog}
    indexed: dict[str, int] = {}
    for criterion_id, score in scores:
        if criterion_id not in known:
            raise ValidationError(
                f"Unknown criterion: {criterion_id}",
                extra={"criterion_id": criterion_id},
            )
        if criterion_id in indexed:
            raise ValidationError(
                f"Criterion evaluated more than once: {criterion_id}",
                extra={"criterion_id": criterion_id},
            )
        _check_criterion_score(criterion_id, score)
        indexed[criterion_id] = score

    missing = [c.id for c in catalog if c.id not in indexed]
    if missing:
        raise IncompleteCriteria(missing)
    return indexed


def compute_employer_score(
    criteria_scores: list[CriterionScore],
    catalog: tuple[Criterion, ...] = EMPLOYER_CRITERIA,
) -> float:
    """
    Weighted employer score: sum(score_i * weight_i) / 100, rounded to 2 decimals.
    Every catalog criterion must appear exactly once with an integer score in 1..7.
    """
    indexed = _index_scores([(c.criterion_id, c.score) for c in criteria_scores], catalog)
    total = sum(Decimal(indexed[c.id]) * Decimal(c.weight) for c in catalog)
    return _round2(total / Decimal(100))


def compute_report_score(
    rubric: dict[str, int], catalog: tuple[Criterion, ...] = REPORT_RUBRIC
) -> float:
    """Mean of the report rubric scores, rounded to 2 decimals."""
    indexed = _index_scores(list(rubric.items()), catalog)
    total = sum(Decimal(score) for score in indexed.values())
    return _round2(total / Decimal(len(catalog)))


def validate_policy(policy: WeightPolicy) -> None:
    """Both percentages non-negative and summing to exactly 100."""
    if policy.employer_weight_pct < 0 or policy.report_weight_pct < 0:
        raise InvalidPolicy(
            "Weight percentages cannot be negative",
            extra=policy.model_dump(),
        )
    if policy.employer_weight_pct + policy.report_weight_pct != 100:
        raise InvalidPolicy(
            "Employer and report percentages must add up to exactly 100",
            extra=policy.model_dump(),
        )


def check_grade(value: float, label: str = "grade") -> None:
    """Reject grades outside the 1.0-7.0 scale."""
    if not MIN_SCORE <= value <= MAX_SCORE:
        raise ScoreOutOfRange(
            f"{label} must be between {MIN_SCORE}.0 and {MAX_SCORE}.0, got {value}",
            extra={label: value},
        )


def normalize_grade(value: float, label: str = "score") -> float:
    """Range-check a decimal grade and round it to 2 decimals."""
    check_grade(value, label)
    return _round2(Decimal(str(value)))


def compute_final_grade(
    employer_score: float, report_score: float, policy: WeightPolicy
) -> float:
    """
    employer_score * employer% + report_score * report%, rounded to 2 decimals.
    A result off the 1.0-7.0 scale is an invariant violation, never clamped.
    """
    validate_policy(policy)
    check_grade(employer_score, "employer_score")
    check_grade(report_score, "report_score")

    weighted = (
        Decimal(str(employer_score)) * Decimal(policy.employer_weight_pct)
        + Decimal(str(report_score)) * Decimal(policy.report_weight_pct)
    ) / Decimal(100)
    grade = _round2(weighted)
    if not MIN_SCORE <= grade <= MAX_SCORE:
        raise ScoringInvariantError(
            f"Final grade {grade} outside {MIN_SCORE}.0-{MAX_SCORE}.0",
            extra={
                "employer_score": employer_score,
                "report_score": report_score,
                "policy_version": policy.version,
            },
        )
    return grade

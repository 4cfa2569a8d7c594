from __future__ import annotations

"""
Normalize the reasoning service's record into the canonical analysis schema.

Design intent:
- Absorb every known field alias and both confidence scales at the boundary.
- Downstream stages only ever see `Analysis` / `Diagnosis`, never raw aliases.
- Default instead of reject: a malformed record still yields a full analysis.
"""

import math
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from medmind.internal_core.audit import ensure_audit, new_trace_id, record_action
from medmind.internal_core.contracts import (
    URGENCY_LEVELS,
    Analysis,
    AnalysisMeta,
    DEFAULT_QUALITY_SCORE,
    AuditTrace,
    ConsistencyAnalysis,
    Diagnosis,
    DoctorNote,
    EvidenceToken,
    SoapNote,
)

ACTION = "normalizeToCanonical"
UNKNOWN_CONDITION = "Unknown Condition"

# Values above this are read as 0-100 percentages, otherwise as 0-1 fractions.
PERCENT_SCALE_THRESHOLD = 1.5

DIAGNOSIS_LIST_KEYS: tuple[str, ...] = ("differentials", "differentialDiagnosis", "diagnosisList")

_DOCTOR_NOTE_KEYS: dict[str, str] = {
    "chief_complaint": "chiefComplaint",
    "history_of_present_illness": "historyOfPresentIllness",
    "imaging_findings": "imagingFindings",
    "lab_interpretation": "labInterpretation",
    "assessment_differential": "assessmentDifferential",
    "plan_and_recommendations": "planAndRecommendations",
}


def normalize_to_canonical(
    raw: Any,
    evidence: Sequence[EvidenceToken] = (),
    *,
    trace_prefix: str = "medmind",
) -> Analysis:
    record: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    analysis = Analysis(
        summary=_as_str(record.get("summary")),
        abnormalities=_as_str_list(record.get("abnormalities")),
        differentials=[
            normalize_diagnosis(item)
            for item in _first_non_empty_list(record, DIAGNOSIS_LIST_KEYS)
        ],
        red_flags=_as_str_list(record.get("redFlags")),
        recommended_tests=_as_str_list(record.get("recommendedTests")),
        soap_note=_soap_note(record.get("soapNote")),
        doctor_note=_doctor_note(record.get("doctorNote")),
        consistency=_consistency(record.get("consistency")),
        timeline_hypothesis=_as_str(record.get("timelineHypothesis")),
        reasoning_chain=_as_str_list(record.get("reasoningChain")),
        patient_explanation=_as_str(record.get("patientExplanation")),
        doctor_explanation=_as_str(record.get("doctorExplanation")),
        child_explanation=_as_str(record.get("childExplanation")),
        next_steps=_as_str(record.get("nextSteps")),
        meta=_meta(record.get("meta")),
        cached_demo=bool(record.get("cached_demo", False)),
        audit=_audit(record.get("audit"), trace_prefix=trace_prefix),
    )
    ensure_audit(analysis, evidence, trace_prefix=trace_prefix)
    record_action(analysis, ACTION)
    return analysis


def normalize_diagnosis(item: Any) -> Diagnosis:
    source: Mapping[str, Any] = item if isinstance(item, Mapping) else {}

    raw_pct, raw_fraction = scale_confidence(
        _first_present(source, ("raw_confidence", "confidence"))
    )
    cal_pct, cal_fraction = scale_confidence(
        _first_present(source, ("calibrated_confidence", "confidence"))
    )

    return Diagnosis(
        name=_as_str(_first_present(source, ("name", "condition"))) or UNKNOWN_CONDITION,
        raw_confidence=raw_pct,
        calibrated_confidence=cal_pct,
        raw_confidence_fraction=raw_fraction,
        calibrated_confidence_fraction=cal_fraction,
        reasoning=_as_str(source.get("reasoning")),
        urgency=_urgency(source.get("urgency")),
        supporting_evidence=_as_str_list(
            _first_present(source, ("supporting_evidence", "supportingEvidence"))
        ),
        conflicting_evidence=_as_str_list(
            _first_present(
                source, ("conflicting_evidence", "conflictingEvidence", "counterarguments")
            )
        ),
        warnings=_as_str_list(source.get("warnings")),
    )


def scale_confidence(value: Any) -> tuple[float, float]:
    """Return `(percentage, fraction)` for a confidence given on either scale."""
    number = to_number(value)
    if number > PERCENT_SCALE_THRESHOLD:
        percentage = min(100.0, number)
        return percentage, percentage / 100.0
    fraction = min(1.0, number)
    return round(fraction * 100.0, 4), fraction


def to_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number) or number < 0.0:
        return 0.0
    return number


def _first_present(source: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return None


def _first_non_empty_list(source: Mapping[str, Any], keys: Sequence[str]) -> list[Any]:
    for key in keys:
        value = source.get(key)
        if isinstance(value, (list, tuple)) and value:
            return list(value)
    return []


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [_as_str(item) for item in value if item is not None]


def _urgency(value: Any) -> str:
    label = _as_str(value).strip().lower()
    for level in URGENCY_LEVELS:
        if level.lower() == label:
            return level
    return "Routine"


def _soap_note(value: Any) -> SoapNote:
    source: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    return SoapNote(
        subjective=_as_str(source.get("subjective")),
        objective=_as_str(source.get("objective")),
        assessment=_as_str(source.get("assessment")),
        plan=_as_str(source.get("plan")),
    )


def _doctor_note(value: Any) -> DoctorNote:
    source: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    return DoctorNote(
        **{
            field: _as_str(_first_present(source, (alias, field)))
            for field, alias in _DOCTOR_NOTE_KEYS.items()
        }
    )


def _consistency(value: Any) -> ConsistencyAnalysis:
    source: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    return ConsistencyAnalysis(
        matches=_as_str_list(source.get("matches")),
        mismatches=_as_str_list(source.get("mismatches")),
        notes=_as_str(source.get("notes")),
    )


def _meta(value: Any) -> AnalysisMeta:
    if not isinstance(value, Mapping):
        return AnalysisMeta()
    n_modalities = to_number(_first_present(value, ("nModalities", "n_modalities")))
    quality = _first_present(value, ("qualityScore", "quality_score"))
    return AnalysisMeta(
        n_modalities=int(n_modalities),
        quality_score=to_number(quality) if quality is not None else DEFAULT_QUALITY_SCORE,
    )


def _audit(value: Any, *, trace_prefix: str) -> AuditTrace | None:
    if not isinstance(value, Mapping):
        return None

    evidence: list[EvidenceToken] = []
    items = value.get("evidence")
    for item in items if isinstance(items, (list, tuple)) else []:
        if isinstance(item, EvidenceToken):
            evidence.append(item)
            continue
        try:
            evidence.append(EvidenceToken.model_validate(item))
        except ValidationError:
            continue

    actions = value.get("postprocessing_actions")
    return AuditTrace(
        trace_id=_as_str(value.get("trace_id")) or new_trace_id(trace_prefix),
        evidence=evidence,
        model_output_raw=value.get("model_output_raw"),
        postprocessing_actions=_as_str_list(actions),
    )

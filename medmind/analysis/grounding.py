from __future__ import annotations

from typing import Sequence

from medmind.internal_core.audit import ensure_audit, record_action
from medmind.internal_core.contracts import Analysis, EvidenceToken

ACTION = "enforceEvidenceGrounding"
GROUNDING_PENALTY = 0.4
NO_EVIDENCE_WARNING = "No explicit supporting evidence found. Confidence penalized."
LOW_CONFIDENCE_TAG = "[LOW CONFIDENCE: NO EVIDENCE]"


def enforce_evidence_grounding(
    analysis: Analysis,
    evidence: Sequence[EvidenceToken] = (),
    *,
    penalty: float = GROUNDING_PENALTY,
) -> Analysis:
    """
    Penalize diagnoses that cite no supporting evidence.

    The penalty multiplies both calibrated forms and is recorded on the
    diagnosis as `grounding_penalty` so calibration can compound it. Warning
    and reasoning tag are added once even when the record passed through a
    previous run.
    """
    evidence_ok = True
    for item in analysis.differentials:
        if item.supporting_evidence:
            continue
        evidence_ok = False

        if item.grounding_penalty >= 1.0:
            item.calibrated_confidence = item.calibrated_confidence * penalty
            item.calibrated_confidence_fraction = item.calibrated_confidence_fraction * penalty
            item.grounding_penalty = penalty
        if NO_EVIDENCE_WARNING not in item.warnings:
            item.warnings.append(NO_EVIDENCE_WARNING)
        if not item.reasoning.startswith(LOW_CONFIDENCE_TAG):
            item.reasoning = f"{LOW_CONFIDENCE_TAG} {item.reasoning}"

    analysis.evidence_ok = evidence_ok
    ensure_audit(analysis, evidence)
    record_action(analysis, ACTION)
    return analysis

from __future__ import annotations

"""
Recompute presentation-ready confidence from modality mix and input quality.

Design intent:
- More independent modalities earn more of the raw confidence (saturating at 3).
- Quality weights live in one table so the estimate is easy to audit.
- Calibrate from a penalty-aware base so ungrounded diagnoses stay penalized.
"""

import math
from typing import Sequence

from medmind.internal_core.audit import record_action
from medmind.internal_core.contracts import DEFAULT_QUALITY_SCORE, Analysis, AnalysisMeta, EvidenceToken

ACTION = "applyConfidenceCalibration"
DEFAULT_QUALITY = DEFAULT_QUALITY_SCORE

# Lab and text share one weight, counted once when either is present.
QUALITY_WEIGHTS: tuple[tuple[frozenset[str], float], ...] = (
    (frozenset({"image"}), 0.9),
    (frozenset({"lab", "text"}), 0.95),
    (frozenset({"audio"}), 0.85),
)


def geometric_mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return math.prod(values) ** (1.0 / len(values))


def count_modalities(evidence: Sequence[EvidenceToken]) -> int:
    return max(1, len({token.type for token in evidence}))


def quality_score(evidence: Sequence[EvidenceToken]) -> float:
    types = {token.type for token in evidence}
    weights = [weight for group, weight in QUALITY_WEIGHTS if types & group]
    return geometric_mean(weights) if weights else DEFAULT_QUALITY


def modal_boost(n_modalities: int) -> float:
    # 1 -> 0.5, 2 -> 0.75, 3+ -> 1.0
    return min(1.0, 0.5 + 0.25 * (max(1, n_modalities) - 1))


def calibrate_confidence(
    raw_confidence: float,
    n_modalities: int,
    quality: float,
    *,
    penalty: float = 1.0,
) -> float:
    result = (raw_confidence / 100.0) * penalty * quality * modal_boost(n_modalities)
    return round(result * 100.0, 2)


def apply_confidence_calibration(
    analysis: Analysis,
    evidence: Sequence[EvidenceToken] = (),
) -> Analysis:
    n_modalities = count_modalities(evidence)
    quality = quality_score(evidence)

    for item in analysis.differentials:
        item.calibrated_confidence = calibrate_confidence(
            item.raw_confidence,
            n_modalities,
            quality,
            penalty=item.grounding_penalty,
        )
        item.calibrated_confidence_fraction = item.calibrated_confidence / 100.0

    analysis.meta = AnalysisMeta(n_modalities=n_modalities, quality_score=round(quality, 2))
    record_action(analysis, ACTION)
    return analysis

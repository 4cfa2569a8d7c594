from __future__ import annotations

import math
from typing import Any

from medmind.analysis.canonical import PERCENT_SCALE_THRESHOLD
from medmind.internal_core.audit import record_action
from medmind.internal_core.contracts import Analysis, Diagnosis

ACTION = "applyCalibrationFallback"


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _fraction_from_percentage(value: float) -> float:
    return value / 100.0 if value > PERCENT_SCALE_THRESHOLD else value


def _as_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return []


def _guard_diagnosis(item: Diagnosis) -> None:
    raw_pct = _finite(item.raw_confidence) or 0.0
    raw_fraction = _finite(item.raw_confidence_fraction)
    if raw_fraction is None:
        raw_fraction = _fraction_from_percentage(raw_pct)
    raw_fraction = min(1.0, max(0.0, raw_fraction))

    cal_pct = _finite(item.calibrated_confidence)
    cal_fraction = _finite(item.calibrated_confidence_fraction)
    if cal_fraction is None and cal_pct is not None:
        cal_fraction = _fraction_from_percentage(cal_pct)

    if cal_fraction is None or cal_fraction <= 0.0:
        # Degenerate calibration falls back to the raw estimate.
        cal_fraction = raw_fraction
        cal_pct = float(round(cal_fraction * 100.0))
    elif cal_fraction > 1.0:
        cal_fraction = 1.0
        cal_pct = 100.0
    elif cal_pct is None or abs(cal_fraction * 100.0 - cal_pct) > 0.5:
        cal_pct = round(cal_fraction * 100.0, 2)

    item.raw_confidence = raw_pct
    item.raw_confidence_fraction = raw_fraction
    item.calibrated_confidence = cal_pct
    item.calibrated_confidence_fraction = cal_fraction
    item.supporting_evidence = _as_list(item.supporting_evidence)
    item.conflicting_evidence = _as_list(item.conflicting_evidence)
    item.warnings = _as_list(item.warnings)


def apply_calibration_fallback(analysis: Analysis) -> None:
    """Keep zero or NaN calibrated confidence from reaching consumers."""
    analysis.differentials = list(analysis.differentials or [])
    for item in analysis.differentials:
        _guard_diagnosis(item)
    record_action(analysis, ACTION)

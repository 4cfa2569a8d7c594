from __future__ import annotations

"""
Deterministic emergency safety net over narrative text and imaging findings.

Design intent:
- Keep safety-critical triggers rule-driven and independent of model output.
- Model every trigger as a static table entry so rules are testable in isolation.
- Escalate conservatively: upgrade urgency, never downgrade it.
"""

import re
from dataclasses import dataclass
from typing import Literal, Sequence

from medmind.internal_core.audit import record_action
from medmind.internal_core.contracts import Analysis

ACTION = "applyEmergencyRules"
URGENCY_UPGRADE_THRESHOLD = 0.2
URGENCY_UPGRADE_WARNING = "Urgency upgraded due to global emergency trigger."


@dataclass(frozen=True)
class PhraseRule:
    pattern: re.Pattern[str]
    reason: str


@dataclass(frozen=True)
class VitalRule:
    key: str
    pattern: re.Pattern[str]
    threshold: int
    direction: Literal["below", "above"]
    reason_template: str

    def breached(self, value: int) -> bool:
        if self.direction == "below":
            return value < self.threshold
        return value > self.threshold


@dataclass(frozen=True)
class SafetyCheckResult:
    flag: bool
    reasons: list[str]


def _phrase(pattern: str, reason: str) -> PhraseRule:
    return PhraseRule(pattern=re.compile(pattern, re.IGNORECASE), reason=reason)


EMERGENCY_PHRASES: tuple[PhraseRule, ...] = (
    _phrase(r"severe shortness of breath", "Reported severe shortness of breath"),
    _phrase(r"unable to breathe", "Reported inability to breathe"),
    _phrase(r"respiratory distress", "Mention of respiratory distress"),
    _phrase(r"sudden chest pain", "Reported sudden chest pain"),
    _phrase(r"acute chest pain", "Reported acute chest pain"),
    _phrase(r"active bleeding", "Mention of active bleeding"),
    _phrase(r"massive hemorrhage", "Mention of massive hemorrhage"),
    _phrase(r"loss of consciousness", "Reported loss of consciousness"),
    _phrase(r"unresponsive", "Patient reported unresponsive"),
    _phrase(r"stroke code", "Mention of Stroke Code"),
    _phrase(r"myocardial infarction", "Mention of MI/Heart Attack"),
)

VITAL_RULES: tuple[VitalRule, ...] = (
    VitalRule(
        key="O2_SAT",
        pattern=re.compile(r"\b(?:SpO2|O2|oxygen|sat)[\s\w]*?(\d{2,3})\s*%", re.IGNORECASE),
        threshold=85,
        direction="below",
        reason_template="Critical Oxygen Saturation detected: {value}% (< 85%)",
    ),
    VitalRule(
        key="SYSTOLIC_BP",
        pattern=re.compile(r"\b(?:BP|blood pressure)[\s:]*?(\d{2,3})\s*/\s*\d{2,3}", re.IGNORECASE),
        threshold=90,
        direction="below",
        reason_template="Critical Hypotension detected: Systolic BP {value} (< 90)",
    ),
    VitalRule(
        key="HEART_RATE",
        pattern=re.compile(r"\b(?:HR|heart rate|pulse)[\s:]*?(\d{2,3})", re.IGNORECASE),
        threshold=140,
        direction="above",
        reason_template="Critical Tachycardia detected: HR {value} (> 140)",
    ),
)

CRITICAL_IMAGE_FINDINGS: tuple[str, ...] = (
    "pneumothorax",
    "hemothorax",
    "aortic dissection",
    "pulmonary embolism",
    "perforation",
    "midline shift",
    "intracranial hemorrhage",
    "free air",
    "massive effusion",
)


def check_text_red_flags(text: str) -> SafetyCheckResult:
    reasons: list[str] = []
    for rule in EMERGENCY_PHRASES:
        if rule.pattern.search(text):
            reasons.append(rule.reason)

    for vital in VITAL_RULES:
        # One reason per vital: the first reading that crosses its threshold.
        for match in vital.pattern.finditer(text):
            value = int(match.group(1))
            if vital.breached(value):
                reasons.append(vital.reason_template.format(value=value))
                break

    return SafetyCheckResult(flag=bool(reasons), reasons=reasons)


def check_image_emergency(abnormalities: Sequence[str]) -> SafetyCheckResult:
    reasons: list[str] = []
    for finding in abnormalities or []:
        lower = str(finding or "").lower()
        if any(keyword in lower for keyword in CRITICAL_IMAGE_FINDINGS):
            reasons.append(f"Critical imaging finding detected: {finding}")
    return SafetyCheckResult(flag=bool(reasons), reasons=reasons)


def apply_emergency_rules(
    analysis: Analysis,
    *,
    symptoms_text: str = "",
    report_text: str = "",
    upgrade_threshold: float = URGENCY_UPGRADE_THRESHOLD,
) -> Analysis:
    full_text = f"{symptoms_text or ''} {report_text or ''}"
    text_result = check_text_red_flags(full_text)
    image_result = check_image_emergency(analysis.abnormalities)

    is_emergency = text_result.flag or image_result.flag
    all_reasons = [*text_result.reasons, *image_result.reasons]

    analysis.emergency = is_emergency
    analysis.emergency_reasons = all_reasons if is_emergency else []
    record_action(analysis, ACTION)

    if is_emergency:
        for item in analysis.differentials:
            if item.urgency != "Emergency" and item.calibrated_confidence_fraction > upgrade_threshold:
                item.urgency = "Urgent"
                item.warnings.append(URGENCY_UPGRADE_WARNING)
        analysis.red_flags = list(dict.fromkeys([*analysis.red_flags, *all_reasons]))

    return analysis

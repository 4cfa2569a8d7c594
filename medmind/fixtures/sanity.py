from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from medmind.analysis.grounding import NO_EVIDENCE_WARNING
from medmind.fixtures.demo_cache import get_cached_case, list_cached_case_ids
from medmind.fixtures.demo_cases import get_demo_case
from medmind.internal_core.config import ServiceConfig, load_config
from medmind.pipeline import AnalysisInputs, analyze_cached_case, match_demo_case


@dataclass
class CaseCheck:
    case_id: str
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def check_demo_case(case_id: str, *, config: ServiceConfig | None = None) -> CaseCheck:
    cfg = config or load_config()
    check = CaseCheck(case_id=case_id)

    record = get_cached_case(case_id)
    if record is None:
        check.failures.append("no cached record")
        return check
    if record.get("cached_demo") is not True:
        check.failures.append("cached_demo flag missing")
    audit = record.get("audit")
    if not isinstance(audit, dict) or not str(audit.get("trace_id") or "").strip():
        check.failures.append("audit trace id missing")

    case = get_demo_case(case_id)
    if case is None:
        inputs = AnalysisInputs()
    else:
        inputs = AnalysisInputs(images=(case.image_name,), report_text=case.report, symptoms_text=case.symptoms)
        if match_demo_case(case.symptoms) != case_id:
            check.failures.append("symptom keywords do not route to this case")

    run = analyze_cached_case(case_id, inputs, config=cfg)
    if run is None:
        check.failures.append("pipeline returned no analysis")
        return check

    analysis = run.analysis
    if not analysis.cached_demo:
        check.failures.append("analysis not marked as cached demo")
    if analysis.emergency != bool(analysis.emergency_reasons):
        check.failures.append("emergency flag disagrees with reasons")
    for item in analysis.differentials:
        if not item.supporting_evidence and NO_EVIDENCE_WARNING not in item.warnings:
            check.failures.append(f"{item.name}: ungrounded without penalty warning")
        if not 0.0 <= item.calibrated_confidence_fraction <= 1.0:
            check.failures.append(f"{item.name}: calibrated fraction out of range")
    return check


def check_demo_cache(
    case_ids: Sequence[str] | None = None,
    *,
    config: ServiceConfig | None = None,
) -> list[CaseCheck]:
    cfg = config or load_config()
    targets = list(case_ids) if case_ids else list_cached_case_ids()
    return [check_demo_case(case_id, config=cfg) for case_id in targets]

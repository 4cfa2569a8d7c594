from __future__ import annotations

"""
Post-processing pipeline for MedMind analyses.

Design intent:
- Run every record, live or cached, through one fixed stage order.
- Keep each stage a total transformation; only the audit log accumulates.
- Log structure (trace id, counts, actions), never patient narrative.
"""

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from medmind.analysis.canonical import normalize_to_canonical
from medmind.analysis.grounding import enforce_evidence_grounding
from medmind.calibration.calibrator import apply_confidence_calibration
from medmind.calibration.fallback import apply_calibration_fallback
from medmind.evidence.collector import collect_all_evidence
from medmind.fixtures import demo_cache
from medmind.internal_core.audit import new_trace_id, record_action
from medmind.internal_core.config import ServiceConfig, load_config
from medmind.internal_core.contracts import Analysis, EvidenceToken, NarrativeSegment
from medmind.safety.emergency import apply_emergency_rules

logger = logging.getLogger(__name__)

LOAD_FROM_CACHE_ACTION = "loadFromCache"
MODEL_RAW_ACTION = "modelRawToCanonical"
FINALIZE_ACTION = "finalizeAnalysisForFrontend"
CACHED_TRACE_PREFIX = "demo"
CACHED_MODEL_OUTPUT = {"note": "Cached Demo"}


@dataclass(frozen=True)
class AnalysisInputs:
    images: Sequence[str] = ()
    report_text: str = ""
    symptoms_text: str = ""
    symptom_segments: Sequence[NarrativeSegment] | None = None

    def clipped(self, max_chars: int) -> "AnalysisInputs":
        if max_chars <= 0:
            return self
        return AnalysisInputs(
            images=tuple(self.images),
            report_text=(self.report_text or "")[:max_chars],
            symptoms_text=(self.symptoms_text or "")[:max_chars],
            symptom_segments=self.symptom_segments,
        )


@dataclass
class PipelineRun:
    analysis: Analysis
    evidence: list[EvidenceToken] = field(default_factory=list)
    case_id: str | None = None


def collect_evidence(inputs: AnalysisInputs, *, config: ServiceConfig | None = None) -> list[EvidenceToken]:
    cfg = config or load_config()
    clipped = inputs.clipped(cfg.MEDMIND_MAX_TEXT_CHARS)
    return collect_all_evidence(
        images=clipped.images,
        report_text=clipped.report_text,
        symptoms_text=clipped.symptoms_text,
        symptom_segments=clipped.symptom_segments,
    )


def run_postprocessing(
    raw: Any,
    evidence: Sequence[EvidenceToken] = (),
    symptoms_text: str = "",
    report_text: str = "",
    *,
    config: ServiceConfig | None = None,
    model_output_raw: Any = None,
) -> Analysis:
    """
    Canonicalize a raw record and run grounding, emergency rules, calibration
    and the fallback guard over it, in that order.

    When `model_output_raw` is given the record came from the reasoning
    service: it is kept verbatim in the audit block and `modelRawToCanonical`
    is recorded right after canonicalization. Actions already present in the
    record's audit block are kept ahead of the pipeline's own.
    """
    cfg = config or load_config()

    analysis = normalize_to_canonical(raw, evidence, trace_prefix=cfg.MEDMIND_TRACE_PREFIX)
    if model_output_raw is not None:
        analysis.audit.model_output_raw = copy.deepcopy(model_output_raw)
        record_action(analysis, MODEL_RAW_ACTION)
    logger.debug("canonicalized trace_id=%s differentials=%d", analysis.audit.trace_id, len(analysis.differentials))

    enforce_evidence_grounding(analysis, evidence, penalty=cfg.MEDMIND_GROUNDING_PENALTY)
    logger.debug("grounding trace_id=%s evidence_ok=%s", analysis.audit.trace_id, analysis.evidence_ok)

    apply_emergency_rules(
        analysis,
        symptoms_text=symptoms_text,
        report_text=report_text,
        upgrade_threshold=cfg.MEDMIND_URGENCY_UPGRADE_THRESHOLD,
    )
    logger.debug(
        "emergency trace_id=%s emergency=%s reasons=%d",
        analysis.audit.trace_id,
        analysis.emergency,
        len(analysis.emergency_reasons),
    )

    apply_confidence_calibration(analysis, evidence)
    logger.debug(
        "calibration trace_id=%s n_modalities=%d quality=%.2f",
        analysis.audit.trace_id,
        analysis.meta.n_modalities,
        analysis.meta.quality_score,
    )

    apply_calibration_fallback(analysis)
    record_action(analysis, FINALIZE_ACTION)

    logger.info(
        "postprocessing complete trace_id=%s differentials=%d emergency=%s actions=%s",
        analysis.audit.trace_id,
        len(analysis.differentials),
        analysis.emergency,
        ",".join(analysis.audit.postprocessing_actions),
    )
    return analysis


def analyze_raw_output(
    raw: Any,
    inputs: AnalysisInputs,
    *,
    evidence: Sequence[EvidenceToken] | None = None,
    config: ServiceConfig | None = None,
) -> PipelineRun:
    cfg = config or load_config()
    clipped = inputs.clipped(cfg.MEDMIND_MAX_TEXT_CHARS)
    tokens = list(evidence) if evidence is not None else collect_evidence(clipped, config=cfg)

    # Any audit block supplied by the model is untrusted; the pipeline owns it.
    record = {key: value for key, value in raw.items() if key != "audit"} if isinstance(raw, Mapping) else {}

    analysis = run_postprocessing(
        record,
        tokens,
        clipped.symptoms_text,
        clipped.report_text,
        config=cfg,
        model_output_raw=raw if raw is not None else {},
    )
    return PipelineRun(analysis=analysis, evidence=tokens)


def match_demo_case(symptoms_text: str) -> str | None:
    return demo_cache.match_demo_case(symptoms_text)


def analyze_cached_case(
    case_id: str,
    inputs: AnalysisInputs,
    *,
    config: ServiceConfig | None = None,
) -> PipelineRun | None:
    """Run a cached fixture through the pipeline; None when no fixture is available."""
    cfg = config or load_config()
    if not cfg.MEDMIND_DEMO_CACHE_ENABLED:
        logger.info("demo cache disabled case_id=%s", case_id)
        return None

    record = demo_cache.get_cached_case(case_id)
    if record is None:
        return None

    clipped = inputs.clipped(cfg.MEDMIND_MAX_TEXT_CHARS)
    tokens = collect_evidence(clipped, config=cfg) or _fixture_evidence(record)

    record["cached_demo"] = True
    record["audit"] = {
        "trace_id": new_trace_id(CACHED_TRACE_PREFIX),
        "evidence": [token.model_dump() for token in tokens],
        "model_output_raw": dict(CACHED_MODEL_OUTPUT),
        "postprocessing_actions": [LOAD_FROM_CACHE_ACTION],
    }

    started = time.perf_counter()
    analysis = run_postprocessing(
        record,
        tokens,
        clipped.symptoms_text,
        clipped.report_text,
        config=cfg,
    )
    logger.debug(
        "cached case case_id=%s elapsed_ms=%.2f",
        case_id,
        (time.perf_counter() - started) * 1000.0,
    )
    return PipelineRun(analysis=analysis, evidence=tokens, case_id=case_id)


def _fixture_evidence(record: Mapping[str, Any]) -> list[EvidenceToken]:
    audit = record.get("audit")
    if not isinstance(audit, Mapping):
        return []
    tokens: list[EvidenceToken] = []
    for item in audit.get("evidence") or []:
        try:
            tokens.append(EvidenceToken.model_validate(item))
        except ValidationError:
            continue
    return tokens

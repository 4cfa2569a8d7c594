from dataclasses import replace

import pytest

from medmind.analysis.grounding import LOW_CONFIDENCE_TAG, NO_EVIDENCE_WARNING
from medmind.fixtures.demo_cases import get_demo_case
from medmind.internal_core.config import load_config
from medmind.pipeline import (
    AnalysisInputs,
    analyze_cached_case,
    analyze_raw_output,
    match_demo_case,
    run_postprocessing,
)

LIVE_ACTIONS = [
    "normalizeToCanonical",
    "modelRawToCanonical",
    "enforceEvidenceGrounding",
    "applyEmergencyRules",
    "applyConfidenceCalibration",
    "applyCalibrationFallback",
    "finalizeAnalysisForFrontend",
]


def _config(**overrides):
    return replace(load_config(), **overrides)


def _demo_inputs(case_id: str) -> AnalysisInputs:
    case = get_demo_case(case_id)
    assert case is not None
    return AnalysisInputs(images=(case.image_name,), report_text=case.report, symptoms_text=case.symptoms)


def test_ungrounded_diagnosis_ends_with_penalty_aware_calibration() -> None:
    run = analyze_raw_output(
        {"differentials": [{"name": "Migraine", "confidence": 80, "reasoning": "Headache pattern."}]},
        AnalysisInputs(),
        config=_config(),
    )
    item = run.analysis.differentials[0]
    # No evidence: quality 0.8, one modality (boost 0.5), grounding penalty 0.4.
    assert item.calibrated_confidence == pytest.approx(12.8)
    assert item.calibrated_confidence_fraction == pytest.approx(0.128)
    assert NO_EVIDENCE_WARNING in item.warnings
    assert item.reasoning.startswith(LOW_CONFIDENCE_TAG)
    assert run.analysis.evidence_ok is False


def test_live_path_records_actions_in_stage_order() -> None:
    raw = {"summary": "s", "differentials": [{"name": "Flu", "confidence": 0.6}]}
    run = analyze_raw_output(raw, AnalysisInputs(symptoms_text="Fever and aches."), config=_config())

    audit = run.analysis.audit
    assert audit.postprocessing_actions == LIVE_ACTIONS
    assert audit.model_output_raw == raw
    assert audit.trace_id.startswith("medmind-")
    assert [item.id for item in audit.evidence] == [item.id for item in run.evidence]


def test_live_path_discards_model_supplied_audit() -> None:
    raw = {"audit": {"trace_id": "model-made", "postprocessing_actions": ["forged"]}}
    run = analyze_raw_output(raw, AnalysisInputs(), config=_config(MEDMIND_TRACE_PREFIX="unit"))
    assert run.analysis.audit.trace_id.startswith("unit-")
    assert "forged" not in run.analysis.audit.postprocessing_actions


def test_pipeline_invariants_hold_on_messy_record() -> None:
    raw = {
        "abnormalities": ["Tension pneumothorax"],
        "emergency": False,
        "differentialDiagnosis": [
            {"condition": "Pneumothorax", "confidence": "95%", "supportingEvidence": ["image:a.png:Primary_Finding"]},
            {"name": "Anxiety", "raw_confidence": -4, "calibrated_confidence": "bad"},
            {"name": "Costochondritis", "confidence": 1.7},
            "not a diagnosis",
        ],
    }
    analysis = run_postprocessing(raw, [], "Sudden chest pain.", "", config=_config())

    assert analysis.emergency is True
    assert analysis.emergency == bool(analysis.emergency_reasons)
    for item in analysis.differentials:
        assert 0.0 <= item.calibrated_confidence_fraction <= 1.0
        assert abs(item.calibrated_confidence_fraction * 100.0 - item.calibrated_confidence) <= 0.5
        if not item.supporting_evidence:
            assert NO_EVIDENCE_WARNING in item.warnings
    assert analysis.differentials[3].name == "Unknown Condition"


def test_emergency_upgrade_threshold_comes_from_config() -> None:
    raw = {"differentials": [{"name": "ACS", "confidence": 50, "supporting_evidence": ["x"]}]}
    strict = run_postprocessing(
        raw, [], "Acute chest pain.", "", config=_config(MEDMIND_URGENCY_UPGRADE_THRESHOLD=0.9)
    )
    lenient = run_postprocessing(
        raw, [], "Acute chest pain.", "", config=_config(MEDMIND_URGENCY_UPGRADE_THRESHOLD=0.2)
    )
    assert strict.differentials[0].urgency == "Routine"
    assert lenient.differentials[0].urgency == "Urgent"


def test_match_demo_case_routes_keywords() -> None:
    assert match_demo_case("productive cough with rust-colored sputum") == "pneumonia"
    assert match_demo_case("craving for ice (pagophagia)") == "anemia"
    assert match_demo_case('felt a "pop" in the knee') == "acl"
    assert match_demo_case("a mole changed color") == "skin"
    assert match_demo_case("headache") is None
    assert match_demo_case("") is None


def test_cached_case_runs_through_same_pipeline() -> None:
    run = analyze_cached_case("pneumonia", _demo_inputs("pneumonia"), config=_config())
    assert run is not None

    analysis = run.analysis
    assert analysis.cached_demo is True
    assert analysis.audit.trace_id.startswith("demo-")
    assert analysis.audit.model_output_raw == {"note": "Cached Demo"}
    assert analysis.audit.postprocessing_actions == [
        "loadFromCache",
        "normalizeToCanonical",
        "enforceEvidenceGrounding",
        "applyEmergencyRules",
        "applyConfidenceCalibration",
        "applyCalibrationFallback",
        "finalizeAnalysisForFrontend",
    ]
    ids = [item.id for item in analysis.audit.evidence]
    assert "lab:General:O2=91" in ids
    assert "image:simulated_scan.jpg:Primary_Finding" in ids
    assert analysis.meta.n_modalities == 3
    top = analysis.differentials[0]
    assert top.name == "Bacterial Pneumonia"
    assert top.calibrated_confidence == pytest.approx(87.84, abs=0.05)


def test_cached_case_returns_private_copies() -> None:
    first = analyze_cached_case("anemia", _demo_inputs("anemia"), config=_config())
    first.analysis.differentials[0].name = "mutated"
    second = analyze_cached_case("anemia", _demo_inputs("anemia"), config=_config())
    assert second.analysis.differentials[0].name == "Iron Deficiency Anemia"
    assert second.analysis.audit.postprocessing_actions.count("loadFromCache") == 1


def test_cached_case_unavailable_returns_none() -> None:
    assert analyze_cached_case("acl", AnalysisInputs(), config=_config()) is None
    assert analyze_cached_case("pneumonia", AnalysisInputs(), config=_config(MEDMIND_DEMO_CACHE_ENABLED=False)) is None


def test_inputs_are_clipped_to_max_text_chars() -> None:
    run = analyze_raw_output(
        {},
        AnalysisInputs(symptoms_text="Severe shortness of breath."),
        config=_config(MEDMIND_MAX_TEXT_CHARS=6),
    )
    assert run.analysis.emergency is False

from medmind.internal_core.contracts import Analysis, Diagnosis
from medmind.safety.emergency import (
    URGENCY_UPGRADE_WARNING,
    apply_emergency_rules,
    check_image_emergency,
    check_text_red_flags,
)


def test_text_red_flag_detects_severe_shortness_of_breath() -> None:
    result = check_text_red_flags("Patient reports SEVERE shortness of breath since morning.")
    assert result.flag is True
    assert result.reasons == ["Reported severe shortness of breath"]


def test_systolic_hypotension_cites_reading() -> None:
    result = check_text_red_flags("Vitals: BP 82/60, HR 98")
    assert result.flag is True
    assert result.reasons == ["Critical Hypotension detected: Systolic BP 82 (< 90)"]


def test_low_oxygen_and_tachycardia_are_reported() -> None:
    result = check_text_red_flags("SpO2 82% on room air. Heart rate 150.")
    assert "Critical Oxygen Saturation detected: 82% (< 85%)" in result.reasons
    assert "Critical Tachycardia detected: HR 150 (> 140)" in result.reasons


def test_normal_vitals_do_not_trigger() -> None:
    result = check_text_red_flags("HR 105 bpm, BP 130/85, O2 Sat 91% on room air.")
    assert result.flag is False
    assert result.reasons == []


def test_later_breaching_reading_is_found() -> None:
    result = check_text_red_flags("BP 120/80 on arrival, BP 85/50 after an hour.")
    assert result.reasons == ["Critical Hypotension detected: Systolic BP 85 (< 90)"]


def test_image_emergency_matches_critical_findings_case_insensitively() -> None:
    result = check_image_emergency(["Large left Pneumothorax", "Small nodule"])
    assert result.flag is True
    assert result.reasons == ["Critical imaging finding detected: Large left Pneumothorax"]


def test_apply_emergency_rules_upgrades_confident_diagnoses_only() -> None:
    analysis = Analysis(
        red_flags=["Existing flag"],
        differentials=[
            Diagnosis(name="MI", calibrated_confidence=60.0, calibrated_confidence_fraction=0.6),
            Diagnosis(name="Reflux", calibrated_confidence=10.0, calibrated_confidence_fraction=0.1),
            Diagnosis(name="PE", urgency="Emergency", calibrated_confidence_fraction=0.9),
        ],
    )
    apply_emergency_rules(analysis, symptoms_text="Sudden chest pain radiating to the arm.")

    assert analysis.emergency is True
    assert analysis.emergency_reasons == ["Reported sudden chest pain"]
    mi, reflux, pe = analysis.differentials
    assert mi.urgency == "Urgent"
    assert mi.warnings == [URGENCY_UPGRADE_WARNING]
    assert reflux.urgency == "Routine"
    assert reflux.warnings == []
    assert pe.urgency == "Emergency"
    assert analysis.red_flags == ["Existing flag", "Reported sudden chest pain"]
    assert analysis.audit.postprocessing_actions == ["applyEmergencyRules"]


def test_apply_emergency_rules_ignores_model_emergency_flag() -> None:
    analysis = Analysis(emergency=True, emergency_reasons=["model said so"])
    apply_emergency_rules(analysis, symptoms_text="Mild cough.", report_text="Unremarkable.")
    assert analysis.emergency is False
    assert analysis.emergency_reasons == []


def test_apply_emergency_rules_reads_abnormalities() -> None:
    analysis = Analysis(abnormalities=["Free air under the diaphragm"])
    apply_emergency_rules(analysis)
    assert analysis.emergency is True
    assert analysis.emergency == bool(analysis.emergency_reasons)
    assert analysis.red_flags == ["Critical imaging finding detected: Free air under the diaphragm"]

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

EvidenceType = Literal["image", "lab", "text", "audio"]

Urgency = Literal["Routine", "Soon", "Urgent", "Emergency"]

URGENCY_LEVELS: tuple[str, ...] = ("Routine", "Soon", "Urgent", "Emergency")

# Input quality assumed when no evidence modality is known.
DEFAULT_QUALITY_SCORE = 0.8


class EvidenceToken(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    type: EvidenceType
    value: str
    source: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)


class NarrativeSegment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)
    text: str

    @model_validator(mode="after")
    def _validate_window(self) -> "NarrativeSegment":
        if self.end < self.start:
            raise ValueError("NarrativeSegment.end must be >= NarrativeSegment.start")
        return self


class Diagnosis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = "Unknown Condition"
    raw_confidence: float = 0.0
    calibrated_confidence: float = 0.0
    raw_confidence_fraction: float = 0.0
    calibrated_confidence_fraction: float = 0.0
    reasoning: str = ""
    urgency: Urgency = "Routine"
    supporting_evidence: List[str] = Field(default_factory=list)
    conflicting_evidence: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    grounding_penalty: float = 1.0


class SoapNote(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""


class DoctorNote(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    chief_complaint: str = Field(default="", alias="chiefComplaint")
    history_of_present_illness: str = Field(default="", alias="historyOfPresentIllness")
    imaging_findings: str = Field(default="", alias="imagingFindings")
    lab_interpretation: str = Field(default="", alias="labInterpretation")
    assessment_differential: str = Field(default="", alias="assessmentDifferential")
    plan_and_recommendations: str = Field(default="", alias="planAndRecommendations")


class ConsistencyAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    matches: List[str] = Field(default_factory=list)
    mismatches: List[str] = Field(default_factory=list)
    notes: str = ""


class AnalysisMeta(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    n_modalities: int = Field(default=0, alias="nModalities")
    quality_score: float = Field(default=DEFAULT_QUALITY_SCORE, alias="qualityScore")


class AuditTrace(BaseModel):
    model_config = ConfigDict(extra="forbid")

    trace_id: str
    evidence: List[EvidenceToken] = Field(default_factory=list)
    model_output_raw: Any = None
    postprocessing_actions: List[str] = Field(default_factory=list)


class Analysis(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    summary: str = ""
    abnormalities: List[str] = Field(default_factory=list)
    differentials: List[Diagnosis] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list, alias="redFlags")
    recommended_tests: List[str] = Field(default_factory=list, alias="recommendedTests")
    soap_note: SoapNote = Field(default_factory=SoapNote, alias="soapNote")
    doctor_note: DoctorNote = Field(default_factory=DoctorNote, alias="doctorNote")
    consistency: ConsistencyAnalysis = Field(default_factory=ConsistencyAnalysis)
    timeline_hypothesis: str = Field(default="", alias="timelineHypothesis")
    reasoning_chain: List[str] = Field(default_factory=list, alias="reasoningChain")
    patient_explanation: str = Field(default="", alias="patientExplanation")
    doctor_explanation: str = Field(default="", alias="doctorExplanation")
    child_explanation: str = Field(default="", alias="childExplanation")
    next_steps: str = Field(default="", alias="nextSteps")
    emergency: bool = False
    emergency_reasons: List[str] = Field(default_factory=list)
    meta: AnalysisMeta = Field(default_factory=AnalysisMeta)
    cached_demo: bool = False
    evidence_ok: Optional[bool] = Field(default=None, alias="_evidence_ok")
    audit: Optional[AuditTrace] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

from __future__ import annotations

"""
HTTP surface for the MedMind post-processing service.

Design intent:
- Keep API orchestration thin and typed.
- Delegate evidence, safety and calibration logic to the pipeline.
- Surface reasoning failures as one generic error; log the cause server-side.
"""

import base64
import binascii
import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from medmind.fixtures.demo_cases import get_demo_case
from medmind.internal_core.config import ServiceConfig, load_config
from medmind.internal_core.contracts import EvidenceToken, NarrativeSegment
from medmind.pipeline import (
    AnalysisInputs,
    PipelineRun,
    analyze_cached_case,
    analyze_raw_output,
    collect_evidence,
    match_demo_case,
)
from medmind.reasoning.adapter import (
    ReasoningAdapterError,
    build_reasoning_prompt,
    encode_media_part,
    request_reasoning,
)

ANALYSIS_FAILED_DETAIL = "Analysis failed."


class AnalysisInputsRequest(BaseModel):
    images: list[str] = Field(default_factory=list)
    report_text: str = ""
    symptoms_text: str = ""
    symptom_segments: list[dict[str, Any]] | None = None


class EvidenceCollectResponse(BaseModel):
    evidence: list[EvidenceToken] = Field(default_factory=list)
    count: int = 0


class PostprocessRequest(AnalysisInputsRequest):
    raw: Any = None
    evidence: list[dict[str, Any]] | None = None


class DemoAnalysisRequest(AnalysisInputsRequest):
    case_id: str | None = None


class MediaPartInput(BaseModel):
    data_b64: str
    mime_type: str


class RunAnalysisRequest(AnalysisInputsRequest):
    media: list[MediaPartInput] = Field(default_factory=list)
    demo_case_id: str | None = None


class AnalysisResponse(BaseModel):
    analysis: dict[str, Any]
    evidence: list[EvidenceToken] = Field(default_factory=list)
    case_id: str | None = None
    debug: dict[str, Any] = Field(default_factory=dict)


app = FastAPI(title="medmind post-processing service")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> ServiceConfig:
    configured = getattr(app.state, "service_config", None)
    if isinstance(configured, ServiceConfig):
        return configured
    try:
        config = load_config()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=f"Invalid service configuration: {exc}") from exc
    logging.getLogger("medmind").setLevel(config.MEDMIND_LOG_LEVEL)
    return config


def _to_inputs(payload: AnalysisInputsRequest) -> AnalysisInputs:
    segments: list[NarrativeSegment] | None = None
    if payload.symptom_segments is not None:
        try:
            segments = [NarrativeSegment.model_validate(item) for item in payload.symptom_segments]
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid symptom_segments: {exc}") from exc
    return AnalysisInputs(
        images=tuple(str(item) for item in payload.images),
        report_text=payload.report_text,
        symptoms_text=payload.symptoms_text,
        symptom_segments=segments,
    )


def _to_response(run: PipelineRun, debug: dict[str, Any] | None = None) -> AnalysisResponse:
    return AnalysisResponse(
        analysis=run.analysis.to_payload(),
        evidence=list(run.evidence),
        case_id=run.case_id,
        debug=dict(debug or {}),
    )


def _decode_media(parts: list[MediaPartInput]) -> list[dict[str, Any]]:
    encoded: list[dict[str, Any]] = []
    for index, part in enumerate(parts):
        try:
            data = base64.b64decode(part.data_b64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(status_code=400, detail=f"Invalid media[{index}].data_b64.") from exc
        try:
            encoded.append(encode_media_part(data, part.mime_type))
        except ReasoningAdapterError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid media[{index}]: {exc}") from exc
    return encoded


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/evidence/collect", response_model=EvidenceCollectResponse)
async def evidence_collect(payload: AnalysisInputsRequest) -> EvidenceCollectResponse:
    tokens = collect_evidence(_to_inputs(payload), config=_get_config())
    return EvidenceCollectResponse(evidence=tokens, count=len(tokens))


@app.post("/analysis/postprocess", response_model=AnalysisResponse)
async def analysis_postprocess(payload: PostprocessRequest) -> AnalysisResponse:
    if not isinstance(payload.raw, dict):
        raise HTTPException(status_code=400, detail="raw must be a JSON object.")

    evidence: list[EvidenceToken] | None = None
    if payload.evidence is not None:
        try:
            evidence = [EvidenceToken.model_validate(item) for item in payload.evidence]
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid evidence: {exc}") from exc

    run = analyze_raw_output(payload.raw, _to_inputs(payload), evidence=evidence, config=_get_config())
    return _to_response(run, {"source": "supplied_evidence" if evidence is not None else "collected_evidence"})


@app.post("/analysis/demo", response_model=AnalysisResponse)
async def analysis_demo(payload: DemoAnalysisRequest) -> AnalysisResponse:
    inputs = _to_inputs(payload)
    case_id = (payload.case_id or "").strip().lower() or match_demo_case(inputs.symptoms_text)
    if not case_id:
        raise HTTPException(status_code=404, detail="No demo case matches the given symptoms.")

    run = analyze_cached_case(case_id, inputs, config=_get_config())
    if run is None:
        raise HTTPException(status_code=404, detail=f"No cached analysis for demo case: {case_id}")
    return _to_response(run, {"source": "demo_cache"})


@app.post("/analysis/run", response_model=AnalysisResponse)
async def analysis_run(payload: RunAnalysisRequest) -> AnalysisResponse:
    producer = getattr(app.state, "reasoning_producer", None)
    if not callable(producer):
        raise HTTPException(status_code=503, detail="Reasoning service is not configured.")

    config = _get_config()
    inputs = _to_inputs(payload).clipped(config.MEDMIND_MAX_TEXT_CHARS)
    media_parts = _decode_media(payload.media)
    tokens = collect_evidence(inputs, config=config)

    demo_case = get_demo_case(payload.demo_case_id or "")
    prompt = build_reasoning_prompt(
        symptoms_text=inputs.symptoms_text,
        report_text=inputs.report_text,
        tokens=tokens,
        demo_context=demo_case.context if demo_case is not None else None,
    )

    try:
        result = request_reasoning(producer, prompt, media_parts)
    except ReasoningAdapterError as exc:
        logger.exception(
            "reasoning request failed step=%s evidence=%d media=%d", exc.step, len(tokens), len(media_parts)
        )
        raise HTTPException(status_code=502, detail=ANALYSIS_FAILED_DETAIL) from exc

    run = analyze_raw_output(result.raw_output, inputs, evidence=tokens, config=config)
    return _to_response(run, {"source": "reasoning_service", "reasoning": result.debug})


def run_server(host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    import uvicorn

    logger.info("starting medmind api on %s:%d", host, port)
    uvicorn.run("medmind.api.main:app", host=host, port=port, reload=reload)

from __future__ import annotations

"""
Boundary to the external reasoning service.

Design intent:
- Treat the producer as opaque: it receives a prompt plus inline media parts
  and returns a JSON record of untrusted shape.
- Fail closed on unusable output so callers surface one generic failure.
- Keep provider SDKs out of the core; the producer is injected.
"""

import base64
import copy
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from medmind.internal_core.contracts import EvidenceToken

ReasoningProducer = Callable[[str, Sequence[dict[str, Any]]], Any]

_DECODER = json.JSONDecoder()

SYSTEM_INSTRUCTION = (
    "You are MedMind.\n"
    "1. Extract abnormalities.\n"
    "2. Diagnose with EVIDENCE.\n"
    "3. REQUIRED: Map 'supporting_evidence' using Canonical IDs provided.\n"
    "4. If evidence is missing for a diagnosis, do NOT list it or mark confidence 0.\n"
)


class ReasoningAdapterError(RuntimeError):
    """Raised when the reasoning producer fails or returns an unusable payload."""

    def __init__(self, message: str, *, step: str = "") -> None:
        super().__init__(message)
        self.step = step


@dataclass(frozen=True)
class ReasoningResult:
    record: dict[str, Any]
    raw_output: Any
    debug: dict[str, Any]


def build_evidence_block(tokens: Sequence[EvidenceToken]) -> str:
    lines = [f'- {token.id} ("{token.value}")' for token in tokens]
    return (
        "*** CANONICAL EVIDENCE TOKENS AVAILABLE ***\n"
        "(Refer to these exact IDs when listing supporting_evidence)\n"
        + "\n".join(lines)
        + "\n*******************************************"
    )


def build_reasoning_prompt(
    *,
    symptoms_text: str,
    report_text: str,
    tokens: Sequence[EvidenceToken],
    demo_context: str | None = None,
) -> str:
    parts = [
        SYSTEM_INSTRUCTION,
        f"PATIENT SYMPTOMS: {symptoms_text or 'None'}",
        f"REPORTS: {report_text or 'None'}",
    ]
    if demo_context:
        parts.append(f"DEMO CONTEXT: {demo_context}")
    parts.append(build_evidence_block(tokens))
    return "\n".join(parts)


def encode_media_part(data: bytes, mime_type: str) -> dict[str, Any]:
    if not isinstance(data, (bytes, bytearray)):
        raise ReasoningAdapterError(f"Media payload must be bytes, got {type(data).__name__}.")
    if not mime_type:
        raise ReasoningAdapterError("Media payload is missing a mime type.")
    try:
        encoded = base64.b64encode(bytes(data)).decode("ascii")
    except Exception as exc:
        raise ReasoningAdapterError(f"Media encoding failed: {exc}") from exc
    return {"inline_data": {"data": encoded, "mime_type": mime_type}}


def parse_model_output(raw: Any) -> dict[str, Any]:
    return _decode_record(raw)[0]


def request_reasoning(
    producer: ReasoningProducer,
    prompt: str,
    media_parts: Sequence[dict[str, Any]] = (),
) -> ReasoningResult:
    started = time.perf_counter()
    try:
        raw = producer(prompt, list(media_parts))
    except ReasoningAdapterError:
        raise
    except Exception as exc:
        raise ReasoningAdapterError(f"Reasoning service call failed: {exc}", step="producer") from exc

    record, step = _decode_record(raw)
    return ReasoningResult(
        record=record,
        raw_output=copy.deepcopy(record),
        debug={
            "status": "ok",
            "parse": step,
            "media_parts": len(media_parts),
            "prompt_chars": len(prompt),
            "inference_ms": round((time.perf_counter() - started) * 1000.0, 2),
        },
    )


def _decode_record(raw: Any) -> tuple[dict[str, Any], str]:
    """Return the record and the step that produced it.

    Steps, in order: ``mapping`` (producer already returned a dict), ``json``
    (the whole text is one object) and ``embedded`` (the first object found
    inside prose or a fenced block). Failures carry ``empty``, ``no_object``
    or ``malformed_object`` on the raised error.
    """
    if isinstance(raw, Mapping):
        return dict(raw), "mapping"
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str) or not raw.strip():
        raise ReasoningAdapterError("Reasoning output is empty.", step="empty")

    text = raw.strip()
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, dict):
        return data, "json"

    start = text.find("{")
    if start < 0:
        raise ReasoningAdapterError("Reasoning output is not valid JSON (no_object).", step="no_object")
    while start >= 0:
        try:
            data, _ = _DECODER.raw_decode(text, start)
        except ValueError:
            data = None
        if isinstance(data, dict):
            return data, "embedded"
        start = text.find("{", start + 1)
    raise ReasoningAdapterError("Reasoning output is not valid JSON (malformed_object).", step="malformed_object")

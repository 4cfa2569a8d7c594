import pytest

from medmind.internal_core.contracts import EvidenceToken
from medmind.reasoning.adapter import (
    ReasoningAdapterError,
    build_evidence_block,
    build_reasoning_prompt,
    encode_media_part,
    parse_model_output,
    request_reasoning,
)


def _tokens() -> list[EvidenceToken]:
    return [
        EvidenceToken(id="lab:General:O2=91", type="lab", value="91"),
        EvidenceToken(id="text:symptoms:0-11:high_fever_", type="text", value="High fever."),
    ]


def test_evidence_block_lists_canonical_ids() -> None:
    block = build_evidence_block(_tokens())
    assert '- lab:General:O2=91 ("91")' in block
    assert '- text:symptoms:0-11:high_fever_ ("High fever.")' in block


def test_prompt_includes_inputs_context_and_evidence() -> None:
    prompt = build_reasoning_prompt(
        symptoms_text="High fever.",
        report_text="",
        tokens=_tokens(),
        demo_context="SIMULATION: chest x-ray",
    )
    assert "PATIENT SYMPTOMS: High fever." in prompt
    assert "REPORTS: None" in prompt
    assert "DEMO CONTEXT: SIMULATION: chest x-ray" in prompt
    assert "lab:General:O2=91" in prompt


def test_parse_model_output_accepts_fenced_json() -> None:
    raw = 'Here you go:\n```json\n{"summary": "ok", "differentials": [{"name": "Flu"}]}\n```'
    assert parse_model_output(raw) == {"summary": "ok", "differentials": [{"name": "Flu"}]}


def test_parse_model_output_passes_mappings_through() -> None:
    assert parse_model_output({"summary": "x"}) == {"summary": "x"}


@pytest.mark.parametrize("raw", ["", "   ", None, b""])
def test_parse_model_output_rejects_empty(raw) -> None:
    with pytest.raises(ReasoningAdapterError, match="empty"):
        parse_model_output(raw)


@pytest.mark.parametrize("raw", ["not json at all", "[1, 2, 3]", '{"unterminated": '])
def test_parse_model_output_rejects_non_objects(raw) -> None:
    with pytest.raises(ReasoningAdapterError, match="not valid JSON"):
        parse_model_output(raw)


def test_request_reasoning_wraps_producer_failures() -> None:
    def producer(prompt, parts):
        raise TimeoutError("upstream timed out")

    with pytest.raises(ReasoningAdapterError, match="Reasoning service call failed"):
        request_reasoning(producer, "prompt")


def test_request_reasoning_returns_record_and_raw_copy() -> None:
    seen = {}

    def producer(prompt, parts):
        seen["prompt"] = prompt
        seen["parts"] = parts
        return '{"summary": "ok"}'

    part = encode_media_part(b"abc", "image/png")
    result = request_reasoning(producer, "the prompt", [part])
    assert result.record == {"summary": "ok"}
    assert result.raw_output == {"summary": "ok"}
    assert result.raw_output is not result.record
    assert result.debug["status"] == "ok"
    assert result.debug["media_parts"] == 1
    assert seen["prompt"] == "the prompt"
    assert seen["parts"] == [{"inline_data": {"data": "YWJj", "mime_type": "image/png"}}]


def test_encode_media_part_rejects_bad_input() -> None:
    with pytest.raises(ReasoningAdapterError):
        encode_media_part("not bytes", "image/png")
    with pytest.raises(ReasoningAdapterError):
        encode_media_part(b"abc", "")


@pytest.mark.parametrize(
    ("raw", "step"),
    [
        ({"summary": "x"}, "mapping"),
        ('  {"summary": "x"}\n', "json"),
        ('Note {not an object} then ```json\n{"summary": "x"}\n```', "embedded"),
    ],
)
def test_request_reasoning_records_parse_step(raw, step) -> None:
    result = request_reasoning(lambda prompt, parts: raw, "prompt")
    assert result.record == {"summary": "x"}
    assert result.debug["parse"] == step


@pytest.mark.parametrize(
    ("raw", "step"),
    [("", "empty"), ("[1, 2, 3]", "no_object"), ('{"unterminated": ', "malformed_object")],
)
def test_parse_failure_reports_step(raw, step) -> None:
    with pytest.raises(ReasoningAdapterError) as excinfo:
        request_reasoning(lambda prompt, parts: raw, "prompt")
    assert excinfo.value.step == step

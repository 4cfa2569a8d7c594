from __future__ import annotations

"""
Convert raw clinical inputs into canonical evidence tokens.

Each token id follows `type:source:location-or-key:slug-or-value` and is the
reference key diagnoses cite in `supporting_evidence`.

Design intent:
- Keep extraction deterministic so the same inputs always yield the same ids.
- Never fail: empty or odd inputs produce fewer tokens, not errors.
"""

import re
from typing import Sequence

from medmind.internal_core.contracts import EvidenceToken, NarrativeSegment

# Central 80% of the frame in a normalized 0-1000 coordinate space.
DEFAULT_IMAGE_BBOX: tuple[int, int, int, int] = (100, 100, 800, 800)
DEFAULT_IMAGE_LABEL = "detected_region_global"
LAB_QUALITY = 0.95
MIN_FRAGMENT_CHARS = 3
SLUG_CHARS = 15

_FILENAME_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9.-]")
_SLUG_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")
_SENTENCE_SPLIT_RE = re.compile(r"([.!?\n]+)")

_LAB_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("HB", re.compile(r"\b(?:Hemoglobin|Hgb|Hb)[\s:]*?(\d+(?:\.\d+)?)", re.IGNORECASE)),
    ("WBC", re.compile(r"\b(?:WBC|White\s?blood\s?cells?)[\s:]*?(\d+(?:\.\d+)?)", re.IGNORECASE)),
    ("PLT", re.compile(r"\b(?:Platelets?|Plt)[\s:]*?(\d{2,})", re.IGNORECASE)),
    ("NA", re.compile(r"\b(?:Sodium|Na\+)[\s:]*?(\d{2,3})", re.IGNORECASE)),
    ("K", re.compile(r"\b(?:Potassium|K\+)[\s:]*?(\d+(?:\.\d+)?)", re.IGNORECASE)),
    ("CR", re.compile(r"\b(?:Creatinine|Cr)[\s:]*?(\d+(?:\.\d+)?)", re.IGNORECASE)),
    (
        "O2",
        re.compile(
            r"\b(?:SpO2|O2|Oxygen)(?:\s*sat(?:uration)?)?[\s:]*?(\d{2,3})",
            re.IGNORECASE,
        ),
    ),
    ("GLU", re.compile(r"\b(?:Glucose|Glu)[\s:]*?(\d{2,3})", re.IGNORECASE)),
)


def sanitize_filename(name: str) -> str:
    return _FILENAME_UNSAFE_RE.sub("_", str(name or ""))


def extract_image_evidence(image_names: Sequence[str]) -> list[EvidenceToken]:
    tokens: list[EvidenceToken] = []
    used: set[str] = set()
    for name in image_names:
        source = str(name or "")
        safe = sanitize_filename(source) or "image"
        candidate = safe
        ordinal = 1
        while candidate in used:
            ordinal += 1
            candidate = f"{safe}_{ordinal}"
        used.add(candidate)
        tokens.append(
            EvidenceToken(
                id=f"image:{candidate}:Primary_Finding",
                type="image",
                value=f"Whole image analysis of {source}",
                source=source,
                meta={
                    "bbox": list(DEFAULT_IMAGE_BBOX),
                    "label": DEFAULT_IMAGE_LABEL,
                },
            )
        )
    return tokens


def extract_lab_evidence(text: str) -> list[EvidenceToken]:
    if not text:
        return []

    tokens: list[EvidenceToken] = []
    for field, pattern in _LAB_PATTERNS:
        for match in pattern.finditer(text):
            value = match.group(1)
            tokens.append(
                EvidenceToken(
                    id=f"lab:General:{field}={value}",
                    type="lab",
                    value=value,
                    source="report",
                    meta={
                        "field": field,
                        "raw": match.group(0),
                        "quality": LAB_QUALITY,
                    },
                )
            )
    return tokens


def extract_narrative_evidence(
    text: str,
    source: str = "transcript",
    segments: Sequence[NarrativeSegment] | None = None,
) -> list[EvidenceToken]:
    """
    Tokenize narrative input.

    Timestamped segments (transcribed audio) take precedence; otherwise the
    text is split on sentence-ending punctuation with a running offset that
    only advances over kept fragments.
    """
    if segments:
        return [
            EvidenceToken(
                id=f"audio:{source}:{seg.start:.1f}-{seg.end:.1f}:seg_{index}",
                type="audio",
                value=seg.text,
                source=source,
                meta={"start": seg.start, "end": seg.end},
            )
            for index, seg in enumerate(segments)
        ]

    if not text:
        return []

    parts = _SENTENCE_SPLIT_RE.split(text)
    tokens: list[EvidenceToken] = []
    offset = 0
    for i in range(0, len(parts), 2):
        delimiter = parts[i + 1] if i + 1 < len(parts) else ""
        sentence = (parts[i] + delimiter).strip()
        if len(sentence) < MIN_FRAGMENT_CHARS:
            continue

        start = offset
        end = offset + len(sentence)
        slug = _SLUG_UNSAFE_RE.sub("_", sentence[:SLUG_CHARS]).lower()
        tokens.append(
            EvidenceToken(
                id=f"text:{source}:{start}-{end}:{slug}",
                type="text",
                value=sentence,
                source=source,
                meta={"start": start, "end": end},
            )
        )
        offset = end
    return tokens


def collect_all_evidence(
    *,
    images: Sequence[str] = (),
    report_text: str = "",
    symptoms_text: str = "",
    symptom_segments: Sequence[NarrativeSegment] | None = None,
) -> list[EvidenceToken]:
    collected = [
        *extract_image_evidence(images),
        *extract_lab_evidence(report_text or ""),
        *extract_narrative_evidence(symptoms_text or "", "symptoms", symptom_segments),
        *extract_narrative_evidence(report_text or "", "report"),
    ]

    # A repeated id (same lab field and value reported twice) keeps its first token.
    tokens: list[EvidenceToken] = []
    seen: set[str] = set()
    for token in collected:
        if token.id in seen:
            continue
        seen.add(token.id)
        tokens.append(token)
    return tokens

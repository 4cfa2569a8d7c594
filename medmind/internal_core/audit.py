from __future__ import annotations

import time
from typing import Sequence

from .contracts import Analysis, AuditTrace, EvidenceToken


def new_trace_id(prefix: str = "medmind") -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


def ensure_audit(
    analysis: Analysis,
    evidence: Sequence[EvidenceToken] = (),
    *,
    trace_prefix: str = "medmind",
) -> AuditTrace:
    if analysis.audit is None:
        analysis.audit = AuditTrace(
            trace_id=new_trace_id(trace_prefix),
            evidence=list(evidence),
            model_output_raw=None,
            postprocessing_actions=[],
        )
    elif not analysis.audit.evidence and evidence:
        analysis.audit.evidence = list(evidence)
    return analysis.audit


def record_action(analysis: Analysis, action: str) -> None:
    # Append-only: actions are never rewritten or removed once recorded.
    ensure_audit(analysis).postprocessing_actions.append(action)

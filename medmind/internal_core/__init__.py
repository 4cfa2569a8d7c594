from .config import ServiceConfig, load_config
from .contracts import Analysis, AuditTrace, Diagnosis, EvidenceToken, NarrativeSegment

__all__ = [
    "Analysis",
    "AuditTrace",
    "Diagnosis",
    "EvidenceToken",
    "NarrativeSegment",
    "ServiceConfig",
    "load_config",
]

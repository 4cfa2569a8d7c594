"""
API orchestration boundary for MedMind.

Design intent:
- Expose thin, typed endpoints for evidence collection and analysis post-processing.
- Keep request validation explicit and failure modes predictable.
- Orchestrate the pipeline without embedding domain logic in routers.
"""

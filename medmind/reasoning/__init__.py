"""
Reasoning service boundary for MedMind.

Design intent:
- Isolate the external model call behind an injected producer.
- Hand the pipeline a parsed record or a single adapter error.
"""

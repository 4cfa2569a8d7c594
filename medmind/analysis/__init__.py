"""
Analysis schema boundary for MedMind.

Design intent:
- Canonicalize untrusted reasoning output before any rule runs on it.
- Keep every diagnosis tied to evidence ids or visibly penalized.
"""

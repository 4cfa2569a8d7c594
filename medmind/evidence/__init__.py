"""
Evidence tokenization boundary for MedMind.

Design intent:
- Turn images, lab text and narrative into typed, uniquely identified tokens.
- Give diagnoses stable ids to cite as grounding references.
"""

"""
Emergency safety boundary for MedMind.

Design intent:
- Flag emergencies from fixed phrase, vital-sign and imaging rules.
- Keep escalation independent of whatever the reasoning service returned.
"""

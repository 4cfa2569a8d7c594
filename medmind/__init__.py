"""
MedMind backend package.

Design intent:
- Turn untrusted reasoning output into a grounded, safety-checked, calibrated analysis.
- Keep stages (evidence/analysis/safety/calibration) independent and auditable.
"""

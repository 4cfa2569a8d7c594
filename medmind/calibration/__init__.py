"""
Confidence calibration boundary for MedMind.

Design intent:
- Turn raw model confidence into a conservative, presentation-ready figure.
- Guarantee consumers never see zero or NaN confidence by accident.
"""

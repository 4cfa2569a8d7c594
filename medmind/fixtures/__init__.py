"""
Demo fixture boundary for MedMind.

Design intent:
- Serve pre-built raw records that run through the same pipeline as live output.
- Keep fixture tables read-only; every lookup returns a private copy.
"""

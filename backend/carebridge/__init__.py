"""
CareBridge backend.

Pediatric therapy practice platform: case management, community,
therapist marketplace and AI-assisted clinical tooling.
"""

__version__ = "1.0.0"

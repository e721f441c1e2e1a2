"""
High-level Python API for structure-guard.

This module gathers the user-facing entry points: the one-call generator and
the engine for callers that run their own decoding loop.
"""

from structure_guard.engine import StructuringEngine
from structure_guard.generator import GenerationResult, StructuredGenerator

# Re-export for convenience
__all__ = ["StructuredGenerator", "GenerationResult", "StructuringEngine"]

"""
Test fixtures for deterministic testing.

This module provides:
- FakeCollaborator: in-memory Metronome endpoints behind httpx.MockTransport
- seed_rows(): pinned wire rows that the golden expectations are built on
"""

from .collaborator import FakeCollaborator
from .seed import NOW, TODAY, seed_rows

__all__ = ["FakeCollaborator", "NOW", "TODAY", "seed_rows"]

"""
In-Memory Repository Implementations.

Data is lost on process restart.
"""

from .violation_repository import InMemoryViolationRepository

__all__ = ["InMemoryViolationRepository"]

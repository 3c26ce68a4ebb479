from .in_memory import InMemoryViolationRepository

__all__ = ["InMemoryViolationRepository"]

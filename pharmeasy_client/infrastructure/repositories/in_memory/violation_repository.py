# =============================================================================
# FILE: infrastructure/repositories/in_memory/violation_repository.py
# =============================================================================
"""
In-Memory Violation Repository (bounded ring buffers).

Diagnostic history only: nothing here survives a restart and nothing here is
ever read by routing.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List

from ....domain.audit import StateTransitionRecord, ViolationRecord


class InMemoryViolationRepository:
    """
    In-memory implementation of ViolationRepository.

    Each buffer keeps the newest `max_*` records; the oldest entry is evicted
    once the cap is reached.
    """

    def __init__(self, *, max_violations: int = 50, max_transitions: int = 50) -> None:
        if max_violations <= 0 or max_transitions <= 0:
            raise ValueError("history sizes must be greater than 0")
        self._violations: Deque[ViolationRecord] = deque(maxlen=max_violations)
        self._transitions: Deque[StateTransitionRecord] = deque(maxlen=max_transitions)

    def record_violation(self, record: ViolationRecord) -> None:
        self._violations.append(record)

    def record_transition(self, record: StateTransitionRecord) -> None:
        self._transitions.append(record)

    def list_violations(self) -> List[ViolationRecord]:
        """Oldest first."""
        return list(self._violations)

    def list_transitions(self) -> List[StateTransitionRecord]:
        return list(self._transitions)

    # -------------------------------------------------------------------------
    # Testing helpers
    # -------------------------------------------------------------------------
    def clear(self) -> None:
        self._violations.clear()
        self._transitions.clear()

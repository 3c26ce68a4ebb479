"""
===============================================================================
TARJETA CRC - domain/repositories.py
===============================================================================

Módulo:
    Puertos de persistencia del cliente

Responsabilidades:
    - KeyValueStore: almacenamiento durable clave/valor (solo strings).
    - ViolationRepository: auditoría acotada (ring buffer).

Colaboradores:
    - infrastructure.storage.*: implementaciones de KeyValueStore.
    - infrastructure.repositories.in_memory.*: ViolationRepository.
    - infrastructure.storage.credential_store: consume KeyValueStore.

Notas:
    - set_many / delete_many existen para que una escritura lógica (token +
      usuario) sea una sola operación del backend de almacenamiento.
===============================================================================
"""

from __future__ import annotations

from typing import Mapping, Protocol

from .audit import StateTransitionRecord, ViolationRecord


class KeyValueStore(Protocol):
    """R: Interface for durable key/value storage."""

    def get(self, key: str) -> str | None:
        """R: Read a value (None if missing)."""
        ...

    def set_many(self, values: Mapping[str, str]) -> None:
        """R: Write several keys in one operation."""
        ...

    def delete_many(self, keys: list[str]) -> None:
        """R: Remove several keys in one operation (missing keys are ignored)."""
        ...


class ViolationRepository(Protocol):
    """R: Interface for bounded audit persistence."""

    def record_violation(self, record: ViolationRecord) -> None:
        ...

    def record_transition(self, record: StateTransitionRecord) -> None:
        ...

    def list_violations(self) -> list[ViolationRecord]:
        ...

    def list_transitions(self) -> list[StateTransitionRecord]:
        ...

    def clear(self) -> None:
        ...

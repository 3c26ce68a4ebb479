"""
============================================================
TARJETA CRC - infrastructure/storage/key_value_store.py
============================================================
Module: Durable Key/Value Backends

Responsibilities:
  - Implementar el puerto KeyValueStore (get / set_many / delete_many).
  - In-memory: para tests y sesiones efímeras.
  - JSON file: sobrevive a un reload del proceso (equivalente a localStorage).
  - Escrituras multi-clave como UNA operación (atómicas a nivel archivo).

Collaborators:
  - domain.repositories.KeyValueStore (contrato)
  - infrastructure.storage.credential_store (único consumidor)
  - threading.Lock para thread-safety
  - os.replace para reemplazo atómico del archivo

Policy / Design Notes:
  - Un archivo corrupto o ilegible se trata como vacío (y se loguea).
  - Los errores de escritura SÍ se propagan: perder credenciales en silencio
    dejaría al usuario con una sesión que no sobrevive un reload.
============================================================
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, Mapping, Optional

from ...crosscutting.logger import logger


class InMemoryKeyValueStore:
    """
    Almacenamiento en memoria.

    Nota:
      - NO sobrevive a reinicios; útil para tests y modo kiosco.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._data.update({str(k): str(v) for k, v in values.items()})

    def delete_many(self, keys: list[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        """Copia del contenido (para tests/diagnóstico)."""
        with self._lock:
            return dict(self._data)


class JsonFileKeyValueStore:
    """
    Almacenamiento durable en un archivo JSON.

    Invariantes:
      - Cada set_many/delete_many reescribe el archivo completo vía os.replace,
        así un lector nunca ve un estado a medio escribir.
      - El contenido en memoria es la fuente de lectura; el archivo se carga
        una sola vez al construir.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = Lock()
        self._data: Dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Credential file unreadable, starting empty",
                extra={"path": str(self._path), "error": str(exc)},
            )
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _flush(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            updated = dict(self._data)
            updated.update({str(k): str(v) for k, v in values.items()})
            self._flush(updated)
            self._data = updated

    def delete_many(self, keys: list[str]) -> None:
        with self._lock:
            updated = {k: v for k, v in self._data.items() if k not in set(keys)}
            if updated == self._data:
                return
            self._flush(updated)
            self._data = updated

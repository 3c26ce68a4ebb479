"""
===============================================================================
TARJETA CRC - crosscutting/logger.py (logs JSON del cliente)
===============================================================================

Responsabilidades:
  - Emitir una línea JSON por evento (parseable por cualquier colector).
  - Adjuntar el contexto vivo: request_id, user_id, role_id, poller.
  - Nunca filtrar credenciales: tokens, refresh tokens, passwords y OTPs se
    reemplazan antes de serializar, aunque lleguen anidados en `extra=`.

Colaboradores:
  - pharmeasy_client/context.py (ContextVars, vía ContextFilter)
  - crosscutting/config.py (log_level / log_json)

Uso:
  from pharmeasy_client.crosscutting.logger import logger
  logger.info("Session committed", extra={"action": "login"})
===============================================================================
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Mapping

REDACTED = "[redacted]"

# R: atributos estándar del LogRecord; todo lo demás vino por `extra=`.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# R: se compara la clave normalizada (minúsculas, sin "_" ni "-").
_SECRET_KEYS = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "otp",
        "code",
        "credential",
        "credentials",
    }
)


def _is_secret(key: str) -> bool:
    normalized = key.lower().replace("_", "").replace("-", "")
    return normalized in _SECRET_KEYS


def redact(value: Any, *, key: str | None = None, depth: int = 0, max_len: int = 2_000) -> Any:
    """Copia de `value` apta para JSON, sin secretos y con strings acotados."""
    if key is not None and _is_secret(key):
        return REDACTED
    if depth > 4:
        return "[depth limit]"
    if isinstance(value, str):
        return value if len(value) <= max_len else value[:max_len] + "...[cut]"
    if isinstance(value, Mapping):
        return {str(k): redact(v, key=str(k), depth=depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact(v, key=key, depth=depth + 1) for v in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


class ContextFilter(logging.Filter):
    """Copia el contexto de context.py al record (sin pisar `extra=`)."""

    def filter(self, record: logging.LogRecord) -> bool:
        from ..context import get_context_dict

        for key, value in get_context_dict().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            entry[key] = redact(value, key=key)

        if record.exc_info and record.exc_info[0] is not None:
            entry["exc_type"] = record.exc_info[0].__name__
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logger(name: str = "pharmeasy_client") -> logging.Logger:
    """Logger del paquete; idempotente frente a re-imports."""
    from .config import get_settings

    settings = get_settings()
    log = logging.getLogger(name)
    level = (settings.log_level or "INFO").upper()
    log.setLevel(logging.getLevelNamesMapping().get(level, logging.INFO))

    if not any(getattr(h, "_pharmeasy", False) for h in log.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler._pharmeasy = True  # type: ignore[attr-defined]
        handler.addFilter(ContextFilter())
        handler.setFormatter(
            JSONFormatter()
            if settings.log_json
            else logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        log.addHandler(handler)

    return log


logger = setup_logger()

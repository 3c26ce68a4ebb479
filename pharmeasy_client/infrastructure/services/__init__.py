"""
Infrastructure Services

Resiliencia de las llamadas de validación de sesión.
"""

from .retry import RETRYABLE_STATUS, create_retry_decorator, is_transient_error

__all__ = [
    "create_retry_decorator",
    "is_transient_error",
    "RETRYABLE_STATUS",
]

"""
Observability for Omni

Provides:
- Structured logging with correlation fields (command, service, case number)
"""

from omni.observability.logging import (
    CorrelationContext,
    configure_logging,
    get_correlation_context,
    get_logger,
    with_correlation,
)

__all__ = [
    "CorrelationContext",
    "configure_logging",
    "get_correlation_context",
    "get_logger",
    "with_correlation",
]

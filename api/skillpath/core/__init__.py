# Core infrastructure
# Database helpers live in skillpath.core.database (they import feature table
# definitions, which import this package).
from skillpath.core.context import (
    LedgerContext,
    clear_context,
    get_context,
    get_correlation_id,
    get_request_id,
    set_correlation_id,
    set_ledger_context,
    set_request_id,
)
from skillpath.core.logging import configure_structlog, get_logger
from skillpath.core.middleware import RequestContextMiddleware


__all__ = [
    "LedgerContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_correlation_id",
    "get_logger",
    "get_request_id",
    "set_correlation_id",
    "set_ledger_context",
    "set_request_id",
]

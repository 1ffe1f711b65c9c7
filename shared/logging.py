"""
Structured JSON logging for the Venue Portal.

Every line carries the service name (taken from the logger name prefix) and,
while a request is in flight, the request id, the client address the rate
limiter keyed on, and the authenticated user id.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional, Tuple
from contextvars import ContextVar

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
client_id_var: ContextVar[Optional[str]] = ContextVar('client_id', default=None)

_CORRELATION_VARS: Tuple[Tuple[str, ContextVar], ...] = (
    ("request_id", request_id_var),
    ("client_id", client_id_var),
    ("user_id", user_id_var),
)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Route structlog through stdlib logging as one JSON object per line."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.format_exc_info,
            add_service_context,
            add_correlation_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    get_logger(f"{service_name}.logging").debug("Logging configured", log_level=log_level)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Loggers are named "<service>.<component>"; expose the service part."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key, var in _CORRELATION_VARS:
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request id for this context, generating one if none was sent."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_user_context(user_id: Optional[str] = None, client_id: Optional[str] = None):
    if user_id:
        user_id_var.set(user_id)
    if client_id:
        client_id_var.set(client_id)


def clear_context():
    for _, var in _CORRELATION_VARS:
        var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)

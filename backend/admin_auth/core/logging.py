"""Structured logging setup and the audit logger.

Application modules log through `structlog.get_logger()`. Authentication
events (issuance, redemption, logout, denied permissions) go through
AuditLogger, which tags every entry with a `scope` ("auth", "permissions",
"auth-guard") so audit trails can be filtered downstream.
"""

import logging
from typing import Any

import structlog


def configure_logging(level: str = "INFO", *, json_logs: bool = False) -> None:
    """Configure structlog and the stdlib root logger once per process.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG").
        json_logs: Render JSON lines (production) instead of console output.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(format="%(message)s", level=log_level)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """Scoped audit trail over structlog.

    Mirrors the `(scope, message, error?, context?)` call shape: the
    scope and message are positional, context is keyword-only.

    Security: callers must never pass raw magic link tokens or session
    credentials as context.
    """

    def __init__(self, logger: Any = None) -> None:
        self._logger = logger or structlog.get_logger("admin_auth.audit")

    def debug(self, scope: str, message: str, **context: Any) -> None:
        self._logger.debug(message, scope=scope, **context)

    def info(self, scope: str, message: str, **context: Any) -> None:
        self._logger.info(message, scope=scope, **context)

    def warning(self, scope: str, message: str, **context: Any) -> None:
        self._logger.warning(message, scope=scope, **context)

    def error(
        self,
        scope: str,
        message: str,
        error: BaseException | None = None,
        **context: Any,
    ) -> None:
        """Log a failure with the originating exception attached.

        Args:
            scope: Audit scope (e.g. "auth").
            message: What failed.
            error: Exception to attach as exc_info, if any.
            **context: Extra key/value context (ids, addresses).
        """
        if error is not None:
            self._logger.error(message, scope=scope, exc_info=error, **context)
        else:
            self._logger.error(message, scope=scope, **context)

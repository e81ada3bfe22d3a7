"""Error Hierarchy — typed, categorized exceptions for database lifecycle failures.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Configuration and composition errors are raised before any I/O happens
    - Engine errors (asyncpg, SQLAlchemy) are NOT wrapped here: they propagate unchanged
    - to_dict() produces a flat, JSON-serializable envelope for callers that embed
      the manager (test harnesses reporting a failed setup); the CLI prints code and message

Design Decisions:
    - Single hierarchy with DbManagerError base: callers catch one type for everything
      this package raises on its own behalf
    - DatabaseCreationError keeps every failed locale attempt and chains the last
      engine error as __cause__, so nothing earlier in the fallback chain is lost
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    CONFIGURATION = "configuration"
    PROGRAMMING = "programming"
    DATABASE = "database"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    database: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None


class DbManagerError(Exception):
    """Base exception for all errors raised by the database manager itself."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_dict(self) -> dict:
        """Convert to a flat, JSON-serializable error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "database": self.context.database,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Programming / Configuration Errors ─────────────────────────

class ConfigurationError(DbManagerError):
    """Required configuration is missing or invalid."""
    def __init__(self, message: str, setting: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONFIGURATION_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, context,
        )
        self.setting = setting


class CompositionError(DbManagerError):
    """SQL template and arguments do not fit together."""
    def __init__(self, message: str, template: str, context: ErrorContext | None = None):
        super().__init__(
            message, "COMPOSITION_ERROR", ErrorCategory.PROGRAMMING,
            ErrorSeverity.CRITICAL, context,
        )
        self.template = template


# ─── Database Errors ────────────────────────────────────────────

class DatabaseCreationError(DbManagerError):
    """Every locale candidate for CREATE DATABASE was rejected by the engine."""
    def __init__(
        self,
        database: str,
        attempts: list[tuple[str, BaseException]],
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.database = database
        ctx.operation = ctx.operation or "create_database"
        causes = "; ".join(f"{locale}: {exc}" for locale, exc in attempts)
        super().__init__(
            f"Could not create database '{database}' with any configured "
            f"collation ({causes})",
            "DATABASE_CREATION_FAILED", ErrorCategory.DATABASE,
            ErrorSeverity.ERROR, ctx,
        )
        self.database = database
        self.attempts = attempts

    @property
    def last_error(self) -> BaseException | None:
        return self.attempts[-1][1] if self.attempts else None

"""Error Hierarchy — tests for codes, envelopes and the locale-attempt aggregate."""

from dbmanager.core.errors import (
    CompositionError,
    ConfigurationError,
    DatabaseCreationError,
    DbManagerError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
)


def test_configuration_error_is_critical():
    err = ConfigurationError("missing superuser", "superuser")
    assert isinstance(err, DbManagerError)
    assert err.code == "CONFIGURATION_ERROR"
    assert err.category == ErrorCategory.CONFIGURATION
    assert err.severity == ErrorSeverity.CRITICAL
    assert err.setting == "superuser"


def test_to_dict_envelope():
    err = CompositionError(
        "bad template", "DROP %s", ErrorContext(database="app", operation="drop"),
    )
    body = err.to_dict()["error"]
    assert body["code"] == "COMPOSITION_ERROR"
    assert body["category"] == "programming"
    assert body["context"] == {"database": "app", "operation": "drop"}
    assert "timestamp" in body


def test_database_creation_error_keeps_every_attempt():
    first, last = ValueError("no fi_FI"), ValueError("no C.UTF-8")
    err = DatabaseCreationError("app", [("fi_FI", first), ("C.UTF-8", last)])
    assert err.attempts == [("fi_FI", first), ("C.UTF-8", last)]
    assert err.last_error is last
    assert "fi_FI: no fi_FI" in err.message
    assert "C.UTF-8: no C.UTF-8" in err.message
    assert err.context.database == "app"
    assert err.context.operation == "create_database"


def test_database_creation_error_without_attempts():
    assert DatabaseCreationError("app", []).last_error is None

"""Sync failures and their user-facing descriptions."""

from dataclasses import dataclass, field


class SyncError(Exception):
    """Base class for failures that abort a sync pass."""

    phase: str | None = None

    def __init__(self, message: str, *, technical_details: str | None = None) -> None:
        self.technical_details = technical_details
        super().__init__(message)


class SyncConnectionError(SyncError):
    """The source or destination store could not be reached."""


class TableNotFoundError(SyncError):
    """The requested table does not exist in the source."""

    phase = "fetch"


class MappingValidationError(SyncError):
    """The field mapping is not usable. Raised before any network call."""

    phase = "validate"

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid field mapping: " + "; ".join(self.errors))


class SchemaReconcileError(SyncError):
    """The destination rejected the field definitions."""

    phase = "reconcile"


class UpsertError(SyncError):
    """The destination rejected the item batch."""

    phase = "upsert"


@dataclass(frozen=True)
class ErrorMessage:
    title: str
    message: str
    suggestions: list[str] = field(default_factory=list)
    technical_details: str | None = None


_MESSAGES: dict[type, tuple[str, str, list[str]]] = {
    SyncConnectionError: (
        "Connection error",
        "Could not reach the source database or the destination collection.",
        [
            "Check the network connection",
            "Confirm the source database URL and the destination API URL",
            "Confirm both services are online",
        ],
    ),
    TableNotFoundError: (
        "Table not found",
        "The table does not exist in the source database.",
        [
            "Check the table name",
            "Confirm the source database URL points at the right database",
        ],
    ),
    MappingValidationError: (
        "Validation error",
        "The field mapping is not valid.",
        [
            "Mark exactly one field as the primary key",
            "Make sure every destination field name is unique",
            "Map at least one column",
        ],
    ),
    SchemaReconcileError: (
        "Schema error",
        "The destination collection rejected the field definitions.",
        [
            "Check that the field types are supported by the collection",
            "Confirm the API key may modify the collection",
        ],
    ),
    UpsertError: (
        "Sync error",
        "The destination collection rejected the items.",
        [
            "Confirm the API key may modify the collection",
            "Try syncing fewer records",
        ],
    ),
}

_UNKNOWN = (
    "Unexpected error",
    "An unexpected error occurred.",
    ["Try the operation again", "Check the logs for details"],
)


def describe_error(exc: BaseException) -> ErrorMessage:
    """Build a user-facing message for an exception."""
    title, message, suggestions = _UNKNOWN
    for exc_type, entry in _MESSAGES.items():
        if isinstance(exc, exc_type):
            title, message, suggestions = entry
            break

    details = getattr(exc, "technical_details", None) or str(exc) or type(exc).__name__
    return ErrorMessage(title, message, list(suggestions), details)

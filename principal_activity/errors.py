"""
Error taxonomy for the Principal Activity Engine.

Pure pipeline functions never raise on malformed data. These exceptions mark
the few boundaries where failure is reported: caller-supplied filter input,
collaborator fetches and mutations, and imported state.
"""


class EngineError(Exception):
    """Base class for engine errors."""


class FilterValidationError(EngineError):
    """Caller-supplied filter input is malformed.

    ``field_errors`` maps each offending field to a message. Fields not listed
    were valid.
    """

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        fields = ", ".join(sorted(self.field_errors))
        super().__init__(f"Invalid filter input: {fields}")


class FetchError(EngineError):
    """The records provider failed."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class MutationError(EngineError):
    """The mutation API rejected a change. Local state was left untouched."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class EngineDisposedError(EngineError):
    """An operation was attempted on an engine after dispose()."""


class StateImportError(EngineError):
    """Persisted or shared state could not be decoded."""

class PRVaultError(Exception):
    """Base class for errors raised by the persistence core."""


class StoreInitializationError(PRVaultError, RuntimeError):
    """The database file could not be opened or its schema created."""


class StoreUnavailable(PRVaultError, RuntimeError):
    """A query was issued before the database finished initializing."""


class DuplicateUsername(PRVaultError, ValueError):
    pass


class InvalidCredentials(PRVaultError, ValueError):
    pass


class ValidationError(PRVaultError, ValueError):
    """Caller supplied malformed input; nothing was written."""


class InvalidInput(ValidationError):
    pass


class NotFound(PRVaultError, LookupError):
    pass


class NoCompletedSets(PRVaultError, ValueError):
    pass


class InvalidSessionState(PRVaultError, RuntimeError):
    pass


class PartialWriteFailure(PRVaultError, RuntimeError):
    """An earlier statement of a multi-statement save was kept while a later one failed."""

"""Errors raised by the backend client wrappers."""


class BackendError(Exception):
    """A request to the managed backend failed (network, throttling, AWS error)."""

    code = "backend_error"

    def __init__(self, message, code=None):
        super().__init__(message)
        if code:
            self.code = code


class ConditionFailed(BackendError):
    """A conditional write was rejected because the row changed or is missing."""

    code = "condition_failed"


class ForeignKeyViolation(BackendError):
    """The row is still referenced by another table and cannot be removed."""

    # same code PostgreSQL uses, so callers can match on it
    code = "23503"

    def __init__(self, table, key, referenced_by):
        super().__init__(f"{table} {key} is still referenced by {referenced_by}")
        self.table = table
        self.key = key
        self.referenced_by = referenced_by


class ProcedureError(BackendError):
    """A remote procedure ran but reported failure."""

    code = "procedure_error"

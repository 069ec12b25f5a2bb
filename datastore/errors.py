class DataStoreError(Exception):
    """Base class for everything the data access layer raises."""


class NotFound(DataStoreError):
    """No record matches the requested id."""

    def __init__(self, kind, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class BackendFailure(DataStoreError):
    """The store reported a failure status or could not be reached."""


class ParseFailure(DataStoreError, ValueError):
    """A stored JSON column could not be decoded.

    Never leaves the mapping layer: callers fall back to the column default.
    """

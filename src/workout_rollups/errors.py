"""Error taxonomy for the rollup engine.

Only storage failures are exceptions. A key with no matching rows and a key
that is already being aggregated are normal outcomes, reported through
return values and logs.
"""


class StorageError(Exception):
    """A read or write against the backing store failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation

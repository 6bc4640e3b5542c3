"""Custom exceptions for remote calls."""


class RemoteCallError(Exception):
    """Base exception for remote call failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RetryExhaustedError(RemoteCallError):
    """Rate limit or network failures persisted past the retry ceiling."""

    def __init__(
        self,
        operation: str,
        retries: int,
        last_cause: str,
        status_code: int | None = None,
    ):
        super().__init__(
            f"{operation} failed after {retries} retries: {last_cause}",
            status_code=status_code,
        )
        self.operation = operation
        self.retries = retries
        self.last_cause = last_cause

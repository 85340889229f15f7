"""Custom exceptions for the email client core."""


class EmailClientError(Exception):
    """Base exception for all email client core errors."""


class BackendError(EmailClientError):
    """Exception raised when the mail backend rejects or fails a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class FetchError(BackendError):
    """Exception raised when a folder listing cannot be fetched."""


class SendError(EmailClientError):
    """Exception raised when sending a message fails."""


class StorageError(EmailClientError):
    """Exception raised for key/value store failures."""


class ConfigurationError(EmailClientError):
    """Exception raised for configuration related errors."""

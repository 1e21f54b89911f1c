"""SDK exception types."""

from __future__ import annotations


class SecureTTSError(Exception):
    """Base SDK error."""


class CredentialError(SecureTTSError):
    """The credential vault could not protect or recover a secret."""


class EncryptionError(CredentialError):
    """Encrypting a credential failed."""


class DecryptionError(CredentialError):
    """Decrypting a stored credential failed."""


class SecureTTSAPIError(SecureTTSError):
    """API request failed.

    Parameters
    ----------
    message : str
        Error message.
    status_code : int | None, default=None
        HTTP status code if available.
    code : str | None, default=None
        Stable server error code if available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class SecureTTSValidationError(SecureTTSAPIError):
    """Input was rejected before or by the server."""


class SecureTTSCSRFError(SecureTTSAPIError):
    """The anti-forgery token was rejected."""


class SecureTTSPermissionError(SecureTTSAPIError):
    """The synthesis provider refused the credential."""


class SecureTTSRateLimitError(SecureTTSAPIError):
    """Caller hit a rate limit.

    Parameters
    ----------
    message : str
        Error message.
    retry_after : int
        Seconds to wait before retrying.
    status_code : int | None, default=None
        HTTP status code if available.
    code : str | None, default=None
        Stable server error code if available.
    """

    def __init__(
        self,
        message: str,
        retry_after: int = 0,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code, code=code)


class SecureTTSUnavailableError(SecureTTSAPIError):
    """The synthesis provider is temporarily unavailable."""

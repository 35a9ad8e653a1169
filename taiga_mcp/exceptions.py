from typing import Optional


class TaigaError(Exception):
    """Base class for every error raised while talking to Taiga."""


class AuthenticationError(TaigaError):
    """Credentials are missing or were rejected, or the cached token is no longer accepted."""


class ResolutionError(TaigaError):
    """A slug, reference number or name did not match any remote entity."""


class TaigaAPIError(TaigaError):
    """
    The remote API answered with a non-2xx status, or could not be reached.

    `status_code` is None for network failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

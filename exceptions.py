from typing import Optional


class WallboxError(Exception):
    """Base exception for Wallbox operations."""

    pass


class RequestFailure(WallboxError):
    """Exception raised for a failed HTTP exchange with the Wallbox API."""

    def __init__(
        self,
        url: str,
        cause: object = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.url = url
        self.cause = cause
        self.status_code = status_code
        super().__init__(self._describe())

    def _describe(self) -> str:
        status = f" (HTTP {self.status_code})" if self.status_code is not None else ""
        return f"Request to {self.url} failed{status}: {self.cause}"


class ConnectionFailure(RequestFailure):
    """Exception raised when the API is unreachable or the request timed out."""

    pass


class ServerFailure(RequestFailure):
    """Exception raised for HTTP 5xx responses."""

    pass


class ClientFailure(RequestFailure):
    """Exception raised for HTTP 4xx responses. Never retried."""

    pass


class Exhausted(RequestFailure):
    """Exception raised when all retries were used up.

    ``cause`` is the last ``ConnectionFailure`` or ``ServerFailure``.
    """

    def _describe(self) -> str:
        return f"Retries exhausted for {self.url}: {self.cause}"


class AuthenticationFailure(RequestFailure):
    """Exception raised when the login exchange failed or returned garbage."""

    def _describe(self) -> str:
        return f"Authentication against {self.url} failed: {self.cause}"


class InvalidResponse(WallboxError):
    """Exception raised when an API payload lacks an expected field."""

    pass


class UnknownStatusCode(WallboxError):
    """Exception raised for a status code missing from the lookup table."""

    def __init__(self, code: object) -> None:
        self.code = code
        super().__init__(f"Unknown charger status code: {code}")

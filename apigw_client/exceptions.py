"""Error types raised by the API Gateway client workflow."""

from typing import Optional


class ApiGatewayClientError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(ApiGatewayClientError):
    """Required settings are missing or malformed."""


class CredentialsUnavailable(ApiGatewayClientError):
    """No usable base credentials could be resolved."""


class RoleAssumptionError(ApiGatewayClientError):
    """STS rejected or could not complete the assume-role call."""

    def __init__(
        self,
        message: str,
        role_arn: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.role_arn = role_arn
        self.code = code


class SigningError(ApiGatewayClientError):
    """The request could not be signed (malformed URL or unencodable body)."""


class TransportError(ApiGatewayClientError):
    """The signed HTTP call failed before a response was received."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class UnexpectedStatusError(TransportError):
    """The endpoint answered with a non-2xx status and the caller asked for it to be raised."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: bytes = b"",
        url: Optional[str] = None,
    ):
        super().__init__(message, url=url)
        self.status_code = status_code
        self.body = body

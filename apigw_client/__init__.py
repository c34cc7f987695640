"""API Gateway SigV4 client - assume a role, sign a request, invoke the endpoint."""

__version__ = "0.1.0"

from .auth import (
    Credentials,
    CredentialProviderChain,
    RoleAssumptionClient,
    SignableRequest,
    SignedRequest,
    SigV4Signer,
    default_provider_chain,
    verify_signature,
)
from .config import InvokerConfig
from .exceptions import (
    ApiGatewayClientError,
    ConfigurationError,
    CredentialsUnavailable,
    RoleAssumptionError,
    SigningError,
    TransportError,
    UnexpectedStatusError,
)
from .invoker import HttpInvoker, InvocationResult
from .workflow import run_workflow

__all__ = [
    "__version__",
    # Credentials and signing
    "Credentials",
    "CredentialProviderChain",
    "RoleAssumptionClient",
    "SignableRequest",
    "SignedRequest",
    "SigV4Signer",
    "default_provider_chain",
    "verify_signature",
    # Configuration
    "InvokerConfig",
    # Errors
    "ApiGatewayClientError",
    "ConfigurationError",
    "CredentialsUnavailable",
    "RoleAssumptionError",
    "SigningError",
    "TransportError",
    "UnexpectedStatusError",
    # Invocation
    "HttpInvoker",
    "InvocationResult",
    "run_workflow",
]

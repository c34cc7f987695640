"""
Authentication utilities for the API Gateway client.

This module provides credential resolution, STS role assumption and IAM
SigV4 request signing.
"""

from .credentials import (
    ContainerCredentialProvider,
    CredentialProvider,
    CredentialProviderChain,
    Credentials,
    EnvironmentCredentialProvider,
    InstanceMetadataCredentialProvider,
    ProfileCredentialProvider,
    StaticCredentialProvider,
    default_provider_chain,
    get_aws_credentials,
)
from .sigv4 import (
    SignableRequest,
    SignedRequest,
    SigV4Signer,
    create_sigv4_headers,
    verify_signature,
)
from .sts import RoleAssumptionClient, assume_role

__all__ = [
    "ContainerCredentialProvider",
    "CredentialProvider",
    "CredentialProviderChain",
    "Credentials",
    "EnvironmentCredentialProvider",
    "InstanceMetadataCredentialProvider",
    "ProfileCredentialProvider",
    "StaticCredentialProvider",
    "default_provider_chain",
    "get_aws_credentials",
    "SignableRequest",
    "SignedRequest",
    "SigV4Signer",
    "create_sigv4_headers",
    "verify_signature",
    "RoleAssumptionClient",
    "assume_role",
]

"""
Sign-and-invoke workflow.

Runs the four steps strictly in order on the calling thread:

    resolve base credentials -> assume role -> sign request -> invoke endpoint

The STS client and the HTTP client are scoped resources; both are released
when their step finishes, on the failure path as well.
"""

import datetime
import logging
from typing import Any, Optional

import httpx

from .auth.credentials import (
    CredentialProvider,
    CredentialProviderChain,
    Credentials,
    default_provider_chain,
)
from .auth.sigv4 import SignableRequest, SignedRequest, SigV4Signer
from .auth.sts import RoleAssumptionClient
from .config import InvokerConfig
from .invoker import HttpInvoker, InvocationResult
from .tracing import add_request_span_attributes, get_tracer, traced

logger = logging.getLogger(__name__)


@traced("resolve_credentials")
def resolve_base_credentials(
    config: InvokerConfig,
    credential_provider: Optional[CredentialProvider] = None,
) -> Credentials:
    """Resolve the base credentials used to call STS."""
    if credential_provider is not None:
        chain = CredentialProviderChain([credential_provider])
    else:
        chain = default_provider_chain(profile_name=config.profile_name)
    return chain.resolve()


@traced("assume_role")
def assume_configured_role(
    config: InvokerConfig,
    base_credentials: Credentials,
    sts_client: Optional[Any] = None,
) -> Credentials:
    """Exchange the base credentials for session credentials of the configured role."""
    with RoleAssumptionClient(base_credentials, region=config.aws_region, sts_client=sts_client) as client:
        return client.assume_role(
            role_arn=config.role_arn,
            session_name=config.role_session_name,
            duration_seconds=config.role_duration_seconds,
            external_id=config.external_id,
        )


def build_request(config: InvokerConfig) -> SignableRequest:
    """Build the JSON request described by the configuration."""
    headers = {}
    if config.request_body:
        headers["Content-Type"] = "application/json"
    return SignableRequest(
        method=config.http_method.upper(),
        url=config.api_url,
        headers=headers,
        body=config.request_body or None,
        region=config.aws_region,
        service=config.service_name,
    )


@traced("sign_request")
def sign_request(
    config: InvokerConfig,
    request: SignableRequest,
    credentials: Credentials,
    timestamp: Optional[datetime.datetime] = None,
) -> SignedRequest:
    signer = SigV4Signer(double_url_encode=config.double_url_encode)
    signed = signer.sign(request, credentials, timestamp=timestamp)

    logger.info("Signed %s %s (scope %s)", signed.method, signed.url, signed.credential_scope)
    logger.info("Signed headers: %s", ";".join(signed.signed_headers))
    logger.debug("Canonical request:\n%s", signed.canonical_request)
    logger.debug("String to sign:\n%s", signed.string_to_sign)
    return signed


def invoke_signed_request(
    config: InvokerConfig,
    signed_request: SignedRequest,
    http_client: Optional[httpx.Client] = None,
) -> InvocationResult:
    """Send the signed request; the invoker is closed even when the call fails."""
    tracer = get_tracer()
    with tracer.start_as_current_span("invoke_endpoint") as span:
        add_request_span_attributes(
            span,
            method=signed_request.method,
            url=signed_request.url,
            region=signed_request.region,
            service=signed_request.service,
        )
        with HttpInvoker(http_client=http_client, timeout_seconds=config.timeout_seconds) as invoker:
            result = invoker.execute(signed_request)
        add_request_span_attributes(span, status_code=result.status_code)

    logger.info("Response headers: %s", result.headers)
    if config.raise_for_status:
        result.raise_for_status()
    return result


def run_workflow(
    config: InvokerConfig,
    credential_provider: Optional[CredentialProvider] = None,
    sts_client: Optional[Any] = None,
    http_client: Optional[httpx.Client] = None,
    timestamp: Optional[datetime.datetime] = None,
) -> InvocationResult:
    """
    Resolve credentials, assume the role, sign and invoke.

    Args:
        config: Workflow configuration (validated here)
        credential_provider: Optional base credential provider used instead of
            the default provider chain
        sts_client: Optional pre-built boto3 STS client
        http_client: Optional httpx client (ownership stays with the caller)
        timestamp: Optional pinned signing time

    Returns:
        InvocationResult of the signed call

    Raises:
        ConfigurationError: If required settings are missing
        CredentialsUnavailable: If no base credentials can be resolved
        RoleAssumptionError: If STS rejects the assume-role call
        SigningError: If the request cannot be signed
        TransportError: If the signed call fails (or returns non-2xx with
            raise_for_status enabled)
    """
    config.validate()

    base_credentials = resolve_base_credentials(config, credential_provider)
    logger.info("Base credentials: %r", base_credentials)

    session_credentials = assume_configured_role(config, base_credentials, sts_client=sts_client)
    logger.info("Session credentials: %r", session_credentials)

    request = build_request(config)
    signed = sign_request(config, request, session_credentials, timestamp=timestamp)
    return invoke_signed_request(config, signed, http_client=http_client)

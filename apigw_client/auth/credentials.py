"""
AWS credential resolution.

Base credentials are looked up through a prioritized chain of providers. Each
provider answers with a set of credentials or ``None`` when its source is not
configured; the first provider with credentials wins. The environment, profile,
container and instance metadata variants are thin adapters over botocore's own
providers, so they read the same variables and files the AWS CLI does.

Usage:
    from apigw_client.auth import default_provider_chain

    chain = default_provider_chain(profile_name="dev")
    credentials = chain.resolve()
    print(credentials.masked_access_key, credentials.expiration)

Default order:
    1. Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, ...)
    2. Shared config/credentials files (profile)
    3. Container credentials endpoint (ECS/EKS)
    4. EC2 instance metadata service (IMDSv2)
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Sequence

from botocore.credentials import (
    ConfigProvider,
    ContainerProvider,
    EnvProvider,
    InstanceMetadataProvider,
    SharedCredentialProvider,
)
from botocore.exceptions import BotoCoreError
from botocore.utils import InstanceMetadataFetcher

from ..exceptions import CredentialsUnavailable

logger = logging.getLogger(__name__)


def parse_expiration(value) -> Optional[datetime]:
    """Normalize an expiration timestamp (ISO 8601 string or datetime) to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        # fromisoformat only understands a trailing "Z" from Python 3.11 onwards
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Credentials:
    """An AWS credential set. Session credentials carry a token and an expiration."""
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None
    expiration: Optional[datetime] = None

    def __repr__(self) -> str:
        return (
            f"Credentials(access_key_id={self.masked_access_key!r}, "
            f"session_token={'<set>' if self.session_token else None}, "
            f"expiration={self.expiration.isoformat() if self.expiration else None})"
        )

    @property
    def masked_access_key(self) -> str:
        """Access key id with everything but the last four characters hidden."""
        if len(self.access_key_id) <= 4:
            return "****"
        return "*" * (len(self.access_key_id) - 4) + self.access_key_id[-4:]

    def expires_in(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        if self.expiration is None:
            return None
        now = now or datetime.now(timezone.utc)
        return self.expiration - now

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        remaining = self.expires_in(now)
        return remaining is not None and remaining <= timedelta(0)


class CredentialProvider(Protocol):
    """A single source of base credentials."""

    name: str

    def load(self) -> Optional[Credentials]:
        """Return credentials, or None when this source is not configured."""
        ...


def _from_botocore(credentials) -> Credentials:
    frozen = credentials.get_frozen_credentials()
    # Only RefreshableCredentials have an expiry, and botocore keeps it private
    expiry = getattr(credentials, "_expiry_time", None)
    return Credentials(
        access_key_id=frozen.access_key,
        secret_access_key=frozen.secret_key,
        session_token=frozen.token or None,
        expiration=parse_expiration(expiry),
    )


def _load_first(name: str, providers) -> Optional[Credentials]:
    """Ask botocore providers in order and convert the first hit."""
    for provider in providers:
        try:
            credentials = provider.load()
            if credentials is not None:
                return _from_botocore(credentials)
        except (BotoCoreError, ValueError, OSError, RuntimeError) as e:
            raise CredentialsUnavailable(
                f"Failed to load credentials from the {name} provider: {e}"
            ) from e
    return None


class StaticCredentialProvider:
    """Provider for credentials the caller already holds."""

    name = "static"

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        session_token: Optional[str] = None,
        expiration: Optional[datetime] = None,
    ):
        self._credentials = Credentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            expiration=parse_expiration(expiration),
        )

    def load(self) -> Optional[Credentials]:
        return self._credentials


class EnvironmentCredentialProvider:
    """
    Reads AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN and
    AWS_CREDENTIAL_EXPIRATION. An access key without a secret is an error.
    """

    name = "environment"

    def __init__(self, environ: Optional[dict[str, str]] = None):
        self._environ = environ if environ is not None else os.environ

    def load(self) -> Optional[Credentials]:
        return _load_first(self.name, [EnvProvider(environ=self._environ)])


class ProfileCredentialProvider:
    """
    Reads static keys for a named profile from the shared credentials file,
    then from the shared config file.

    Only keys stored in the profile itself count. A profile holding nothing
    but settings (a region, say) yields None, leaving the container and
    instance metadata providers to answer for themselves.
    """

    name = "profile"

    CREDENTIALS_FILE = "~/.aws/credentials"
    CONFIG_FILE = "~/.aws/config"

    def __init__(self, profile_name: Optional[str] = None, environ: Optional[dict[str, str]] = None):
        self._environ = environ if environ is not None else os.environ
        self.profile_name = profile_name or self._environ.get("AWS_PROFILE") or "default"

    def _path(self, variable: str, default: str) -> str:
        return os.path.expanduser(self._environ.get(variable) or default)

    def load(self) -> Optional[Credentials]:
        credentials = _load_first(self.name, [
            SharedCredentialProvider(
                self._path("AWS_SHARED_CREDENTIALS_FILE", self.CREDENTIALS_FILE),
                profile_name=self.profile_name,
            ),
            ConfigProvider(
                self._path("AWS_CONFIG_FILE", self.CONFIG_FILE),
                profile_name=self.profile_name,
            ),
        ])
        if credentials is None:
            logger.debug("Profile %s has no keys in the shared config files", self.profile_name)
        return credentials


class ContainerCredentialProvider:
    """
    Fetches credentials from the ECS/EKS container credentials endpoint.

    Only active when AWS_CONTAINER_CREDENTIALS_RELATIVE_URI or
    AWS_CONTAINER_CREDENTIALS_FULL_URI is set. Once configured, an endpoint
    that cannot be reached or answers with an error is a hard failure.

    Args:
        environ: Environment to read, ``os.environ`` by default
        fetcher: Optional ``botocore.utils.ContainerMetadataFetcher``
    """

    name = "container"

    def __init__(self, environ: Optional[dict[str, str]] = None, fetcher=None):
        self._environ = environ if environ is not None else os.environ
        self._fetcher = fetcher

    def load(self) -> Optional[Credentials]:
        return _load_first(self.name, [ContainerProvider(environ=self._environ, fetcher=self._fetcher)])


class InstanceMetadataCredentialProvider:
    """
    Fetches instance role credentials from EC2 IMDSv2.

    An unreachable metadata service, or an instance without a role, yields
    None. AWS_EC2_METADATA_DISABLED=true switches the provider off.

    Args:
        environ: Environment to read, ``os.environ`` by default
        fetcher: Optional ``botocore.utils.InstanceMetadataFetcher``
        timeout: Seconds to wait for each metadata request
        num_attempts: Attempts per metadata request
    """

    name = "instance-metadata"

    DEFAULT_TIMEOUT = 1

    def __init__(
        self,
        environ: Optional[dict[str, str]] = None,
        fetcher=None,
        timeout: float = DEFAULT_TIMEOUT,
        num_attempts: int = 1,
    ):
        self._environ = environ if environ is not None else os.environ
        self._fetcher = fetcher
        self._timeout = timeout
        self._num_attempts = num_attempts

    def load(self) -> Optional[Credentials]:
        fetcher = self._fetcher or InstanceMetadataFetcher(
            timeout=self._timeout,
            num_attempts=self._num_attempts,
            env=dict(self._environ),
        )
        return _load_first(self.name, [InstanceMetadataProvider(iam_role_fetcher=fetcher)])


class CredentialProviderChain:
    """
    Resolves credentials by asking each provider in priority order.

    Attributes:
        providers: Providers in lookup order
    """

    def __init__(self, providers: Sequence[CredentialProvider]):
        self.providers = list(providers)

    def resolve(self) -> Credentials:
        """
        Resolve base credentials.

        Returns:
            Credentials from the first provider that has any

        Raises:
            CredentialsUnavailable: If no provider yields credentials, or a
                configured provider is broken
        """
        for provider in self.providers:
            credentials = provider.load()
            if credentials is not None:
                logger.info(
                    "Resolved credentials from %s provider (access key %s)",
                    provider.name,
                    credentials.masked_access_key,
                )
                return credentials
            logger.debug("Credential provider %s has no credentials", provider.name)

        tried = ", ".join(provider.name for provider in self.providers) or "none"
        raise CredentialsUnavailable(f"No AWS credentials found (providers tried: {tried})")


def default_provider_chain(profile_name: Optional[str] = None) -> CredentialProviderChain:
    """
    Build the default provider chain.

    Args:
        profile_name: Optional shared config profile (falls back to AWS_PROFILE)

    Returns:
        CredentialProviderChain: environment, profile, container, instance metadata
    """
    return CredentialProviderChain([
        EnvironmentCredentialProvider(),
        ProfileCredentialProvider(profile_name),
        ContainerCredentialProvider(),
        InstanceMetadataCredentialProvider(),
    ])


def get_aws_credentials(profile_name: Optional[str] = None) -> Credentials:
    """
    Get AWS credentials from the default provider chain.

    Args:
        profile_name: Optional AWS profile name to use

    Returns:
        Credentials with access key, secret key and optional session token

    Raises:
        CredentialsUnavailable: If credentials cannot be obtained
    """
    return default_provider_chain(profile_name=profile_name).resolve()

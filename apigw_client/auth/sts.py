"""
STS role assumption.

Exchanges a set of base credentials plus a role ARN for temporary session
credentials scoped to that role.

Usage:
    from apigw_client.auth import RoleAssumptionClient

    with RoleAssumptionClient(base_credentials, region="us-west-2") as sts:
        session_credentials = sts.assume_role(
            role_arn="arn:aws:iam::123456789012:role/demo",
            session_name="test-session-1",
        )
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import RoleAssumptionError
from .credentials import Credentials, parse_expiration

logger = logging.getLogger(__name__)


class RoleAssumptionClient:
    """
    Thin wrapper around the boto3 STS client for AssumeRole.

    The STS client is authenticated with the supplied base credentials and is
    a scoped resource: close it (or use the client as a context manager) once
    role assumption is done.

    Attributes:
        region: Region of the STS endpoint
    """

    def __init__(
        self,
        base_credentials: Credentials,
        region: str = "us-west-2",
        sts_client: Optional[Any] = None,
        connect_timeout: int = 10,
        read_timeout: int = 30,
    ):
        """
        Initialize the role assumption client.

        Args:
            base_credentials: Credentials used to authenticate the AssumeRole call
            region: AWS region for the regional STS endpoint
            sts_client: Optional pre-built boto3 STS client
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
        """
        self.region = region

        if sts_client is not None:
            self._client = sts_client
            self._owns_client = False
            return

        # No retries: a rejected assume-role call is reported straight back
        boto_config = Config(
            region_name=region,
            retries={
                "max_attempts": 1,
                "mode": "standard",
            },
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        session = boto3.Session(
            aws_access_key_id=base_credentials.access_key_id,
            aws_secret_access_key=base_credentials.secret_access_key,
            aws_session_token=base_credentials.session_token,
            region_name=region,
        )
        self._client = session.client("sts", config=boto_config)
        self._owns_client = True

    def __enter__(self) -> "RoleAssumptionClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying connections of the STS client if this wrapper built it."""
        if self._owns_client:
            self._client.close()

    def assume_role(
        self,
        role_arn: str,
        session_name: str,
        duration_seconds: Optional[int] = None,
        external_id: Optional[str] = None,
    ) -> Credentials:
        """
        Assume the given role and return its temporary credentials.

        The ARN and session name are passed through unchecked; botocore's
        parameter validation and the STS service reject malformed values.

        Args:
            role_arn: ARN of the role to assume
            session_name: Role session name recorded by STS
            duration_seconds: Optional session lifetime
            external_id: Optional external id required by the role's trust policy

        Returns:
            Session credentials with token and expiration

        Raises:
            RoleAssumptionError: If STS rejects the request or cannot be reached
        """
        params: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": session_name,
        }
        if duration_seconds is not None:
            params["DurationSeconds"] = duration_seconds
        if external_id:
            params["ExternalId"] = external_id

        logger.info("Assuming role %s as session %s", role_arn, session_name)
        try:
            response = self._client.assume_role(**params)
        except ClientError as e:
            error = e.response.get("Error", {})
            raise RoleAssumptionError(
                f"Failed to assume role {role_arn}: {error.get('Message', str(e))}",
                role_arn=role_arn,
                code=error.get("Code"),
            ) from e
        except BotoCoreError as e:
            raise RoleAssumptionError(
                f"Failed to assume role {role_arn}: {e}",
                role_arn=role_arn,
            ) from e

        try:
            creds = response["Credentials"]
            credentials = Credentials(
                access_key_id=creds["AccessKeyId"],
                secret_access_key=creds["SecretAccessKey"],
                session_token=creds["SessionToken"],
                expiration=parse_expiration(creds["Expiration"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RoleAssumptionError(
                f"Malformed AssumeRole response for {role_arn}",
                role_arn=role_arn,
            ) from e

        logger.info(
            "Assumed role %s (access key %s) expires on %s",
            response.get("AssumedRoleUser", {}).get("Arn", role_arn),
            credentials.masked_access_key,
            credentials.expiration.isoformat() if credentials.expiration else "never",
        )
        return credentials

    def get_caller_identity(self) -> Optional[dict]:
        """
        Get the AWS caller identity for debugging.

        Returns:
            Dictionary with Account, Arn, and UserId, or None if failed
        """
        try:
            identity = self._client.get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            logger.warning("GetCallerIdentity failed: %s", e)
            return None
        return {
            "Account": identity.get("Account"),
            "Arn": identity.get("Arn"),
            "UserId": identity.get("UserId"),
        }


def assume_role(
    base_credentials: Credentials,
    role_arn: str,
    session_name: str,
    region: str = "us-west-2",
    **kwargs,
) -> Credentials:
    """
    Convenience function: assume a role with a short-lived STS client.

    Args:
        base_credentials: Credentials used to authenticate the call
        role_arn: ARN of the role to assume
        session_name: Role session name
        region: AWS region
        **kwargs: duration_seconds / external_id

    Returns:
        Session credentials
    """
    with RoleAssumptionClient(base_credentials, region=region) as client:
        return client.assume_role(role_arn, session_name, **kwargs)

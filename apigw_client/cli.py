"""
Command line entry point: assume a role, sign a request and call API Gateway.

Usage:
    apigw-invoke --url https://abc123.execute-api.us-west-2.amazonaws.com/prod/echo \\
        --role-arn arn:aws:iam::123456789012:role/demo
    apigw-invoke --verify-auth --profile dev

Authentication:
    Base credentials come from the default provider chain:
    - Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
    - AWS credentials/config files (--profile or AWS_PROFILE)
    - Container credentials (ECS/EKS)
    - EC2 instance role (IMDSv2)

    Required IAM permissions:
    - sts:AssumeRole on the target role (base credentials)
    - execute-api:Invoke on the API (assumed role)

Exit codes:
    0  the signed call was attempted (whatever its outcome)
    1  configuration, base credentials or role assumption failed
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional, Sequence

from .auth.credentials import default_provider_chain
from .auth.sts import RoleAssumptionClient
from .config import InvokerConfig
from .exceptions import ConfigurationError, CredentialsUnavailable, RoleAssumptionError
from .tracing import init_tracing, shutdown_tracing
from .workflow import run_workflow

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stdout; safe to call more than once."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apigw-invoke",
        description="Invoke an IAM-authorized API Gateway endpoint with SigV4-signed requests "
                    "using temporary credentials from STS AssumeRole",
    )
    parser.add_argument("--url", help="API Gateway endpoint URL (env: API_URL)")
    parser.add_argument("--role-arn", help="ARN of the role to assume (env: ROLE_ARN)")
    parser.add_argument(
        "--session-name",
        help="Role session name (env: ROLE_SESSION_NAME, default: test-session-1)",
    )
    parser.add_argument("--region", help="AWS region (env: AWS_REGION, default: us-west-2)")
    parser.add_argument(
        "--service",
        help="Signing service name (env: SIGNING_SERVICE, default: execute-api)",
    )
    parser.add_argument("--method", help="HTTP method (env: HTTP_METHOD, default: POST)")
    parser.add_argument("--body", help="JSON request body (env: REQUEST_BODY)")
    parser.add_argument("--profile", help="AWS profile name to use for base credentials")
    parser.add_argument(
        "--duration-seconds",
        type=int,
        help="Lifetime of the assumed role session in seconds",
    )
    parser.add_argument("--external-id", help="External id required by the role trust policy")
    parser.add_argument(
        "--no-double-url-encode",
        action="store_true",
        help="Sign the path as-is instead of double URL-encoding it (non API Gateway targets)",
    )
    parser.add_argument(
        "--raise-for-status",
        action="store_true",
        help="Treat non-2xx responses as errors",
    )
    parser.add_argument("--timeout", type=float, help="HTTP timeout in seconds")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (env: LOG_LEVEL, default: INFO)",
    )
    parser.add_argument(
        "--verify-auth",
        action="store_true",
        help="Resolve base credentials, print the caller identity and exit",
    )
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[InvokerConfig] = None) -> InvokerConfig:
    """Overlay command line flags on the environment configuration."""
    config = base or InvokerConfig.from_env()
    overrides = {
        "api_url": args.url,
        "role_arn": args.role_arn,
        "role_session_name": args.session_name,
        "aws_region": args.region,
        "service_name": args.service,
        "http_method": args.method.upper() if args.method else None,
        "request_body": args.body,
        "profile_name": args.profile,
        "role_duration_seconds": args.duration_seconds,
        "external_id": args.external_id,
        "timeout_seconds": args.timeout,
        "log_level": args.log_level,
    }
    config = replace(config, **{key: value for key, value in overrides.items() if value is not None})
    if args.no_double_url_encode:
        config = replace(config, double_url_encode=False)
    if args.raise_for_status:
        config = replace(config, raise_for_status=True)
    return config


def verify_auth(config: InvokerConfig) -> int:
    """Resolve base credentials and print who they belong to."""
    try:
        credentials = default_provider_chain(profile_name=config.profile_name).resolve()
    except CredentialsUnavailable as e:
        logger.error("Credential verification failed: %s", e)
        return 1

    with RoleAssumptionClient(credentials, region=config.aws_region) as sts:
        identity = sts.get_caller_identity()
    if identity is None:
        logger.error("Credentials %r were rejected by STS", credentials)
        return 1

    print("Credentials are valid")
    print(f"   Account: {identity['Account']}")
    print(f"   ARN: {identity['Arn']}")
    print(f"   User ID: {identity['UserId']}")
    return 0


def print_result(result) -> None:
    print(result.status_code)
    print(result.status_text)
    print(result.text)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the workflow and return the process exit code.

    Role assumption failures (and missing configuration or base credentials)
    are fatal and return 1. Any other failure of the signed call is logged
    with its traceback and still returns 0.
    """
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        configure_logging()
        logger.error("%s", e)
        return 1
    configure_logging(config.log_level)

    if args.verify_auth:
        return verify_auth(config)

    if config.otel_endpoint or config.otel_console_export:
        init_tracing(
            otlp_endpoint=config.otel_endpoint or None,
            enable_console_export=config.otel_console_export,
        )

    try:
        result = run_workflow(config)
    except (ConfigurationError, CredentialsUnavailable) as e:
        logger.error("%s", e)
        return 1
    except RoleAssumptionError as e:
        logger.error("Role assumption failed: %s", e)
        return 1
    except Exception:
        logger.exception("Signed API call failed")
        return 0
    finally:
        shutdown_tracing()

    print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Signing walkthrough for an IAM-authorized API Gateway endpoint.

Assumes the configured role, signs the request and prints every SigV4
intermediate (canonical request, string to sign, signed headers) before
sending it. Useful when API Gateway answers 403 "signature does not match".

Usage:
    python scripts/invoke_api.py --url https://abc123.execute-api.us-west-2.amazonaws.com/prod/echo \\
        --role-arn arn:aws:iam::123456789012:role/demo
    python scripts/invoke_api.py --url ... --role-arn ... --dry-run
    python scripts/invoke_api.py --url ... --role-arn ... --compare-encoding

Authentication:
    Base credentials come from the default provider chain (environment,
    shared config files, container or instance role). The base identity needs
    sts:AssumeRole on the role; the role needs execute-api:Invoke on the API.
"""

import argparse
import dataclasses
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from apigw_client.cli import build_parser, config_from_args, configure_logging, print_result
from apigw_client.exceptions import ApiGatewayClientError
from apigw_client.workflow import (
    assume_configured_role,
    build_request,
    invoke_signed_request,
    resolve_base_credentials,
    sign_request,
)


def print_section(title: str, content: str) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)
    print(content)
    print()


def print_signing_details(signed) -> None:
    print_section("Canonical request", signed.canonical_request)
    print_section("String to sign", signed.string_to_sign)
    headers = "\n".join(
        f"{name}: {'<redacted>' if name.lower() == 'x-amz-security-token' else value}"
        for name, value in signed.headers.items()
    )
    print_section("Signed request headers", headers)


def main() -> int:
    parser = build_parser()
    parser.description = "Print the SigV4 signing steps for an API Gateway request, then send it"
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Sign and print the request without sending it",
    )
    parser.add_argument(
        "--compare-encoding",
        action="store_true",
        help="Also print the canonical request with single URL-encoding",
    )
    args = parser.parse_args()

    config = config_from_args(args)
    configure_logging(config.log_level)

    try:
        config.validate()
        base_credentials = resolve_base_credentials(config)
        session_credentials = assume_configured_role(config, base_credentials)
        print(f"Session credentials: {session_credentials!r}\n")

        request = build_request(config)
        signed = sign_request(config, request, session_credentials)
        print_signing_details(signed)

        if args.compare_encoding:
            other = sign_request(
                dataclasses.replace(config, double_url_encode=not config.double_url_encode),
                request,
                session_credentials,
            )
            mode = "single" if config.double_url_encode else "double"
            print_section(f"Canonical request ({mode} URL-encoding)", other.canonical_request)

        if args.dry_run:
            return 0

        result = invoke_signed_request(config, signed)
    except ApiGatewayClientError as e:
        print(f"Error: {e}")
        return 1

    print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())

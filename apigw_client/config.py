"""Configuration for the API Gateway SigV4 client."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

load_dotenv()

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


@dataclass
class InvokerConfig:
    """Configuration for one signed API Gateway invocation."""

    # AWS / STS configuration
    aws_region: str = "us-west-2"
    profile_name: Optional[str] = None
    role_arn: str = ""
    role_session_name: str = "test-session-1"
    role_duration_seconds: Optional[int] = None
    external_id: Optional[str] = None

    # Target endpoint configuration
    api_url: str = ""
    http_method: str = "POST"
    service_name: str = "execute-api"
    request_body: str = '{"string": "hello"}'
    double_url_encode: bool = True
    timeout_seconds: Optional[float] = None
    raise_for_status: bool = False

    # Logging and OpenTelemetry configuration
    log_level: str = "INFO"
    otel_endpoint: str = ""
    otel_console_export: bool = False

    @classmethod
    def from_env(cls) -> "InvokerConfig":
        """Load configuration from environment variables."""
        return cls(
            aws_region=os.getenv("AWS_REGION", cls.aws_region),
            profile_name=os.getenv("AWS_PROFILE") or None,
            role_arn=os.getenv("ROLE_ARN", ""),
            role_session_name=os.getenv("ROLE_SESSION_NAME", cls.role_session_name),
            role_duration_seconds=_env_int("ROLE_DURATION_SECONDS"),
            external_id=os.getenv("ROLE_EXTERNAL_ID") or None,
            api_url=os.getenv("API_URL", ""),
            http_method=os.getenv("HTTP_METHOD", cls.http_method).upper(),
            service_name=os.getenv("SIGNING_SERVICE", cls.service_name),
            request_body=os.getenv("REQUEST_BODY", cls.request_body),
            double_url_encode=_env_bool("DOUBLE_URL_ENCODE", cls.double_url_encode),
            timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS"),
            raise_for_status=_env_bool("RAISE_FOR_STATUS", cls.raise_for_status),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            otel_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", ""),
            otel_console_export=_env_bool("OTEL_CONSOLE_EXPORT", False),
        )

    def validate(self) -> None:
        """
        Check that the settings needed for a full invocation are present.

        Raises:
            ConfigurationError: If the role ARN or the API URL is missing
        """
        missing = []
        if not self.role_arn:
            missing.append("ROLE_ARN")
        if not self.api_url:
            missing.append("API_URL")
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        if not self.aws_region:
            raise ConfigurationError("AWS_REGION must not be empty")

"""
AWS SigV4 request signing for API Gateway.

This module signs HTTP requests with AWS Signature Version 4 so they can be
sent to IAM-authorized API Gateway endpoints (service name ``execute-api``).
API Gateway re-decodes the request path once before checking the signature,
so the canonical URI is double URL-encoded by default.

Usage:
    from apigw_client.auth import SignableRequest, SigV4Signer

    request = SignableRequest(
        method="POST",
        url="https://abc123.execute-api.us-west-2.amazonaws.com/prod/echo",
        headers={"Content-Type": "application/json"},
        body='{"string": "hello"}',
        region="us-west-2",
        service="execute-api",
    )
    signed = SigV4Signer().sign(request, credentials)
    print(signed.headers["authorization"])
"""

import datetime
import hashlib
import hmac
import re
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import quote, unquote_to_bytes

import httpx

from ..exceptions import SigningError
from .credentials import Credentials, get_aws_credentials

ALGORITHM = "AWS4-HMAC-SHA256"
SIGV4_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

# Headers that proxies or the transport may add or rewrite after signing
UNSIGNED_HEADERS = frozenset({
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
})

_AUTHORIZATION_RE = re.compile(
    r"^AWS4-HMAC-SHA256 Credential=(?P<credential>[^,\s]+),\s*"
    r"SignedHeaders=(?P<signed_headers>[^,\s]+),\s*"
    r"Signature=(?P<signature>[0-9a-f]{64})$"
)

Body = Union[bytes, bytearray, str, None]


def _encode_body(body: Body) -> bytes:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if isinstance(body, str):
        try:
            return body.encode("utf-8")
        except UnicodeEncodeError as e:
            raise SigningError(f"Request body cannot be encoded as UTF-8: {e}") from e
    raise SigningError(f"Unsupported request body type: {type(body).__name__}")


@dataclass(frozen=True)
class SignableRequest:
    """An HTTP request waiting to be signed."""
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Body = None
    region: str = "us-west-2"
    service: str = "execute-api"

    @property
    def body_bytes(self) -> bytes:
        """The exact bytes that are hashed and sent."""
        return _encode_body(self.body)


@dataclass(frozen=True)
class SignedRequest:
    """
    A signed HTTP request.

    The signature only holds for this exact body and header set; build a new
    SignableRequest and sign again if anything has to change.
    """
    method: str
    url: str
    headers: dict[str, str]
    body: bytes
    region: str
    service: str
    amz_date: str
    signed_headers: tuple[str, ...]
    signature: str
    canonical_request: str
    string_to_sign: str

    @property
    def authorization(self) -> str:
        return self.headers["authorization"]

    @property
    def credential_scope(self) -> str:
        return f"{self.amz_date[:8]}/{self.region}/{self.service}/aws4_request"


class SigV4Signer:
    """
    AWS Signature Version 4 request signer.

    The signer holds no credentials and no clock: credentials are passed per
    call and the signing time can be pinned, which makes signing fully
    deterministic. Credential expiration is not checked here; rejecting
    expired credentials is the server's job.

    Attributes:
        double_url_encode: Encode the already percent-encoded path once more
            (required by API Gateway)
        include_content_sha256: Add a signed x-amz-content-sha256 header
    """

    ALGORITHM = ALGORITHM

    def __init__(self, double_url_encode: bool = True, include_content_sha256: bool = False):
        self.double_url_encode = double_url_encode
        self.include_content_sha256 = include_content_sha256

    def _sign(self, key: bytes, msg: str) -> bytes:
        """Create HMAC-SHA256 signature."""
        return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()

    def _get_signature_key(self, secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
        """
        Derive the signing key for SigV4.

        Args:
            secret_key: AWS secret access key
            date_stamp: Date in YYYYMMDD format
            region: Signing region
            service: Signing service name

        Returns:
            Derived signing key
        """
        k_date = self._sign(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
        k_region = self._sign(k_date, region)
        k_service = self._sign(k_region, service)
        return self._sign(k_service, "aws4_request")

    def _hash_payload(self, payload: bytes) -> str:
        """Create SHA256 hash of the payload."""
        return hashlib.sha256(payload).hexdigest()

    @staticmethod
    def _parse_url(url: str) -> httpx.URL:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise SigningError(f"Malformed request URL {url!r}: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise SigningError(f"Malformed request URL {url!r}: an http(s) scheme and host are required")
        return parsed

    def _canonical_uri(self, parsed: httpx.URL) -> str:
        # raw_path is the percent-encoded path exactly as it goes on the wire
        path = parsed.raw_path.decode("ascii").split("?", 1)[0] or "/"
        if self.double_url_encode:
            return quote(path, safe="/~")
        return path

    @staticmethod
    def _canonical_query(parsed: httpx.URL) -> str:
        query = parsed.query.decode("ascii")
        if not query:
            return ""
        params = []
        for pair in query.split("&"):
            if not pair:
                continue
            key, _, value = pair.partition("=")
            params.append((quote(unquote_to_bytes(key), safe="~"), quote(unquote_to_bytes(value), safe="~")))
        return "&".join(f"{key}={value}" for key, value in sorted(params))

    @staticmethod
    def _canonical_headers(headers: dict[str, str], names: Optional[list[str]] = None) -> tuple[str, str]:
        """
        Build the canonical header block and the signed header list.

        Args:
            headers: Request headers (any case)
            names: Restrict to these lower-cased names (used for verification)

        Returns:
            (canonical headers, semicolon-separated signed header names)
        """
        normalized: dict[str, list[str]] = {}
        for name, value in headers.items():
            key = name.strip().lower()
            if names is None and key in UNSIGNED_HEADERS:
                continue
            if names is not None and key not in names:
                continue
            normalized.setdefault(key, []).append(" ".join(str(value).split()))

        canonical_headers = "".join(
            f"{key}:{','.join(values)}\n" for key, values in sorted(normalized.items())
        )
        signed_headers = ";".join(sorted(normalized))
        return canonical_headers, signed_headers

    def _create_canonical_request(
        self,
        method: str,
        parsed: httpx.URL,
        canonical_headers: str,
        signed_headers: str,
        payload_hash: str,
    ) -> str:
        """
        Create the canonical request string for SigV4.

        Args:
            method: HTTP method
            parsed: Parsed request URL
            canonical_headers: Canonical header block
            signed_headers: Semicolon-separated list of signed header names
            payload_hash: SHA256 hash of the request payload

        Returns:
            Canonical request string
        """
        return "\n".join([
            method.upper(),
            self._canonical_uri(parsed),
            self._canonical_query(parsed),
            canonical_headers,
            signed_headers,
            payload_hash,
        ])

    def _create_string_to_sign(self, amz_date: str, credential_scope: str, canonical_request: str) -> str:
        return "\n".join([
            self.ALGORITHM,
            amz_date,
            credential_scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ])

    @staticmethod
    def _format_timestamp(timestamp: Optional[datetime.datetime]) -> str:
        if timestamp is None:
            timestamp = datetime.datetime.now(datetime.timezone.utc)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
        else:
            timestamp = timestamp.astimezone(datetime.timezone.utc)
        return timestamp.strftime(SIGV4_TIMESTAMP_FORMAT)

    def sign(
        self,
        request: SignableRequest,
        credentials: Credentials,
        timestamp: Optional[datetime.datetime] = None,
    ) -> SignedRequest:
        """
        Sign an HTTP request using AWS SigV4.

        Args:
            request: The request to sign
            credentials: Credentials to sign with (expiration is not checked)
            timestamp: Signing time; defaults to now (UTC). Naive values are UTC.

        Returns:
            SignedRequest carrying host, x-amz-date, x-amz-security-token (for
            session credentials) and authorization headers

        Raises:
            SigningError: If the URL is malformed or the body cannot be encoded
        """
        parsed = self._parse_url(request.url)
        body = request.body_bytes
        amz_date = self._format_timestamp(timestamp)
        date_stamp = amz_date[:8]
        payload_hash = self._hash_payload(body)

        replaced = {"host", "x-amz-date", "x-amz-security-token", "authorization"}
        if self.include_content_sha256:
            replaced.add("x-amz-content-sha256")
        headers = {
            name: value for name, value in request.headers.items()
            if name.lower() not in replaced
        }

        headers["host"] = parsed.netloc.decode("ascii")
        headers["x-amz-date"] = amz_date
        if credentials.session_token:
            headers["x-amz-security-token"] = credentials.session_token
        if self.include_content_sha256:
            headers["x-amz-content-sha256"] = payload_hash

        canonical_headers, signed_headers = self._canonical_headers(headers)
        canonical_request = self._create_canonical_request(
            method=request.method,
            parsed=parsed,
            canonical_headers=canonical_headers,
            signed_headers=signed_headers,
            payload_hash=payload_hash,
        )

        credential_scope = f"{date_stamp}/{request.region}/{request.service}/aws4_request"
        string_to_sign = self._create_string_to_sign(amz_date, credential_scope, canonical_request)

        signing_key = self._get_signature_key(
            credentials.secret_access_key, date_stamp, request.region, request.service
        )
        signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

        headers["authorization"] = (
            f"{self.ALGORITHM} "
            f"Credential={credentials.access_key_id}/{credential_scope}, "
            f"SignedHeaders={signed_headers}, "
            f"Signature={signature}"
        )

        return SignedRequest(
            method=request.method.upper(),
            url=request.url,
            headers=headers,
            body=body,
            region=request.region,
            service=request.service,
            amz_date=amz_date,
            signed_headers=tuple(signed_headers.split(";")),
            signature=signature,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
        )

    def verify(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Body,
        credentials: Credentials,
    ) -> bool:
        """
        Check a received request's SigV4 signature the way a server would.

        Only the headers listed in SignedHeaders are used, so headers added
        after signing (for example trace headers) do not matter; any change to
        a signed header, the path, the query or the body does.

        Returns:
            True if the Authorization header matches the recomputed signature
        """
        lowered = {name.lower(): value for name, value in headers.items()}
        match = _AUTHORIZATION_RE.match(lowered.get("authorization", "").strip())
        amz_date = lowered.get("x-amz-date")
        if match is None or not amz_date:
            return False

        scope = match.group("credential").split("/")
        if len(scope) != 5 or scope[4] != "aws4_request":
            return False
        access_key_id, date_stamp, region, service, _ = scope
        if access_key_id != credentials.access_key_id or not amz_date.startswith(date_stamp):
            return False

        names = match.group("signed_headers").split(";")
        if any(name not in lowered for name in names):
            return False

        try:
            parsed = self._parse_url(url)
            payload = _encode_body(body)
        except SigningError:
            return False

        canonical_headers, signed_headers = self._canonical_headers(lowered, names=names)
        canonical_request = self._create_canonical_request(
            method=method,
            parsed=parsed,
            canonical_headers=canonical_headers,
            signed_headers=signed_headers,
            payload_hash=self._hash_payload(payload),
        )
        credential_scope = f"{date_stamp}/{region}/{service}/aws4_request"
        string_to_sign = self._create_string_to_sign(amz_date, credential_scope, canonical_request)
        signing_key = self._get_signature_key(credentials.secret_access_key, date_stamp, region, service)
        expected = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, match.group("signature"))


def verify_signature(
    signed_request: SignedRequest,
    credentials: Credentials,
    *,
    double_url_encode: bool = True,
) -> bool:
    """
    Verify a SignedRequest against the credentials it claims to be signed with.

    Args:
        signed_request: Request as it would be sent
        credentials: Credentials the server knows for the access key
        double_url_encode: Whether the verifying endpoint double-encodes the path

    Returns:
        True if the signature still matches the request
    """
    return SigV4Signer(double_url_encode=double_url_encode).verify(
        method=signed_request.method,
        url=signed_request.url,
        headers=signed_request.headers,
        body=signed_request.body,
        credentials=credentials,
    )


def create_sigv4_headers(
    method: str,
    url: str,
    region: str,
    body: Body = "",
    service: str = "execute-api",
    headers: Optional[dict[str, str]] = None,
    credentials: Optional[Credentials] = None,
    profile_name: Optional[str] = None,
    double_url_encode: bool = True,
) -> dict[str, str]:
    """
    Convenience function to create SigV4-signed headers.

    Args:
        method: HTTP method
        url: Request URL
        region: AWS region
        body: Request body
        service: AWS service name
        headers: Optional existing headers
        credentials: Credentials to sign with; resolved from the default chain if omitted
        profile_name: Optional AWS profile name used when resolving credentials
        double_url_encode: Double-encode the canonical path

    Returns:
        Dictionary of signed headers
    """
    if credentials is None:
        credentials = get_aws_credentials(profile_name)

    request = SignableRequest(
        method=method,
        url=url,
        headers=dict(headers) if headers else {},
        body=body,
        region=region,
        service=service,
    )
    signed = SigV4Signer(double_url_encode=double_url_encode).sign(request, credentials)
    return signed.headers

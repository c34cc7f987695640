"""
HTTP invoker for signed requests.

Sends a SignedRequest exactly as signed and reads the whole response into
memory. The invoker owns its httpx client unless one is injected.

Usage:
    from apigw_client.invoker import HttpInvoker

    with HttpInvoker() as invoker:
        result = invoker.execute(signed_request)
        print(result.status_code, result.status_text)
        print(result.text)
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .auth.sigv4 import SignedRequest
from .exceptions import TransportError, UnexpectedStatusError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationResult:
    """Response from a signed invocation."""
    status_code: int
    status_text: str
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)

    def raise_for_status(self) -> None:
        """
        Raise if the endpoint did not answer with a 2xx status.

        Raises:
            UnexpectedStatusError: For any non-2xx status
        """
        if not self.ok:
            raise UnexpectedStatusError(
                f"{self.url or 'Endpoint'} returned {self.status_code} {self.status_text}",
                status_code=self.status_code,
                body=self.body,
                url=self.url,
            )


class HttpInvoker:
    """
    Executes signed requests over an explicitly owned httpx client.

    Attributes:
        timeout_seconds: Request timeout, or None for the httpx default
    """

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the invoker.

        Args:
            http_client: Optional client to use; the caller keeps ownership of it
            timeout_seconds: Request timeout when the invoker builds its own client
        """
        self.timeout_seconds = timeout_seconds
        if http_client is not None:
            self._client = http_client
            self._owns_client = False
        else:
            if timeout_seconds is not None:
                self._client = httpx.Client(timeout=timeout_seconds)
            else:
                self._client = httpx.Client()
            self._owns_client = True

    def __enter__(self) -> "HttpInvoker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def close(self) -> None:
        """Close the underlying client if this invoker created it."""
        if self._owns_client and not self._client.is_closed:
            self._client.close()

    def execute(self, signed_request: SignedRequest) -> InvocationResult:
        """
        Send a signed request and read the full response.

        Non-2xx responses are returned, not raised; use
        InvocationResult.raise_for_status() to treat them as errors.

        Args:
            signed_request: Request produced by SigV4Signer.sign

        Returns:
            InvocationResult with status, reason phrase, headers and body

        Raises:
            TransportError: On connection errors, timeouts or protocol errors
        """
        request = self._client.build_request(
            signed_request.method,
            signed_request.url,
            headers=signed_request.headers,
            content=signed_request.body or None,
        )

        logger.debug("Sending %s %s", request.method, request.url)
        start_time = time.time()
        try:
            response = self._client.send(request)
            body = response.content
        except httpx.HTTPError as e:
            raise TransportError(
                f"{signed_request.method} {signed_request.url} failed: {type(e).__name__}: {e}",
                url=signed_request.url,
            ) from e
        elapsed_ms = (time.time() - start_time) * 1000

        result = InvocationResult(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            body=body,
            headers=dict(response.headers),
            url=signed_request.url,
            elapsed_ms=elapsed_ms,
        )
        if result.ok:
            logger.info("Endpoint returned %s %s in %.0f ms", result.status_code, result.status_text, elapsed_ms)
        else:
            logger.warning("Endpoint returned %s %s in %.0f ms", result.status_code, result.status_text, elapsed_ms)
        return result

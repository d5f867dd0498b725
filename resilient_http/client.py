"""
HTTP client implementation.

This module contains the ``HttpClient`` class: one network round trip per
logical call, typed error mapping, bearer token injection, request and
response hooks, and a single token-refresh retry after a 401. Retries and
circuit breaking are composed around it by the caller.
"""

import inspect
import logging
import time
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Generic, Literal, Optional, TypeVar

import httpx
from pydantic_core import to_json

from .config import ClientConfig
from .errors import AppError
from .result import Result

T = TypeVar("T")

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


@dataclass(frozen=True)
class HttpRequest:
    """
    Immutable request descriptor.

    Attributes:
        method: HTTP method
        url: Absolute URL, or a path relative to the client's base URL
        headers: Extra headers; these win over defaults and the auth header
        body: Payload; None sends no body, str/bytes are sent as-is,
            anything else is serialized to JSON
        skip_interceptors: Bypass the interceptor, observer and refresh hooks
    """

    method: HttpMethod
    url: str
    headers: Optional[Mapping[str, str]] = None
    body: Any = None
    skip_interceptors: bool = False

    def __post_init__(self) -> None:
        if self.method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")

    def with_changes(self, **changes: Any) -> "HttpRequest":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class HttpResponse(Generic[T]):
    """Status code and parsed payload of a successful round trip."""

    status: int
    data: T
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ResponseInfo:
    """Timing metadata handed to the response observer."""

    method: str
    url: str
    status: int
    duration_ms: float


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class _MalformedBody(Exception):
    pass


class HttpClient:
    """
    An asynchronous HTTP client returning typed outcomes.

    Features:
    - Long-lived httpx.AsyncClient with connection pooling
    - Bearer token injection from a token provider
    - Request interceptor and response observer hooks
    - One refresh-and-retry on 401
    - Failures returned as ``Result.err(AppError)``, never raised

    **Example:**
    ```python
    async with HttpClient(ClientConfig(base_url="https://api.example.com")) as client:
        result = await client.get("/posts")
        posts = result.value.data if result.is_ok else []
    ```

    The client holds configuration and a connection pool only; concurrent
    ``request`` calls share no other state.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ClientConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._closed = False

        self.logger = logging.getLogger(self.config.logging.logger_name)
        self.logger.setLevel(getattr(logging, self.config.logging.level))

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        self._ensure_initialized()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_initialized(self) -> httpx.AsyncClient:
        """Create the pooled httpx client on first use."""
        if self._client is None:
            if self._closed:
                raise RuntimeError("HttpClient is closed")
            self._client = httpx.AsyncClient(
                timeout=self.config.to_httpx_timeout(),
                follow_redirects=self.config.follow_redirects,
                verify=self.config.verify_ssl,
                transport=self._transport,
                headers=(
                    {"User-Agent": self.config.user_agent}
                    if self.config.user_agent
                    else None
                ),
            )
            self.logger.info(
                f"HttpClient initialized with base_url={self.config.base_url!r}"
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._client is not None and not self._closed:
            await self._client.aclose()
            self.logger.info("HttpClient closed")
        self._closed = True

    def _build_url(self, url: str) -> str:
        if httpx.URL(url).is_absolute_url:
            return url
        return f"{self.config.base_url}{url}"

    async def _build_headers(
        self, request: HttpRequest, token_override: Optional[str]
    ) -> httpx.Headers:
        headers = httpx.Headers({"Content-Type": "application/json"})
        if token_override is None and self.config.get_auth_token is not None:
            token = await _resolve(self.config.get_auth_token())
            if token:
                headers["Authorization"] = f"Bearer {token}"
        if request.headers:
            headers.update(request.headers)
        # A refreshed token replaces any Authorization the descriptor carries
        if token_override is not None:
            headers["Authorization"] = f"Bearer {token_override}"
        return headers

    @staticmethod
    def _encode_body(body: Any) -> Optional[bytes]:
        if body is None:
            return None
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")
        return to_json(body)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return response.text
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise _MalformedBody(str(e)) from e

    async def _observe(self, info: ResponseInfo) -> None:
        observer = self.config.response_observer
        if observer is None:
            return
        try:
            await _resolve(observer(info))
        except Exception:
            self.logger.warning(
                f"Response observer failed for {info.method} {info.url}",
                exc_info=True,
            )

    async def _attempt(
        self, request: HttpRequest, token_override: Optional[str] = None
    ) -> tuple[Optional[httpx.Response], Result[HttpResponse[Any], AppError]]:
        """
        Perform one network round trip.

        Returns the raw response (None when none was obtained) together with
        the classified outcome. The response is closed before returning.
        """
        client = self._ensure_initialized()
        url = self._build_url(request.url)
        headers = await self._build_headers(request, token_override)
        content = self._encode_body(request.body)

        started = time.perf_counter()
        try:
            response = await client.request(
                request.method, url, headers=headers, content=content
            )
        except httpx.RequestError as e:
            self.logger.debug(f"{request.method} {url} failed: {e!r}")
            return None, Result.err(AppError.network("Network error", cause=e))

        try:
            outcome = self._classify(response)
        finally:
            await response.aclose()

        duration_ms = (time.perf_counter() - started) * 1000
        self.logger.debug(
            f"{request.method} {url} -> {response.status_code} "
            f"in {duration_ms:.1f}ms"
        )
        if not request.skip_interceptors:
            await self._observe(
                ResponseInfo(request.method, url, response.status_code, duration_ms)
            )
        return response, outcome

    def _classify(
        self, response: httpx.Response
    ) -> Result[HttpResponse[Any], AppError]:
        status = response.status_code
        if not response.is_success:
            if status == 401:
                return Result.err(
                    AppError.unauthorized("Unauthorized", status_code=status)
                )
            if status == 409:
                return Result.err(AppError.conflict("Conflict", status_code=status))
            return Result.err(
                AppError.unknown(
                    f"Request failed with status {status}", status_code=status
                )
            )

        try:
            data = self._parse_body(response)
        except _MalformedBody as e:
            return Result.err(
                AppError.unknown(
                    "Malformed JSON response", cause=e.__cause__, status_code=status
                )
            )
        return Result.ok(HttpResponse(status, data, dict(response.headers)))

    async def _refresh(self) -> Optional[str]:
        refresher = self.config.refresh_token
        if refresher is None:
            return None
        try:
            token = await _resolve(refresher())
        except Exception:
            self.logger.warning("Token refresh failed", exc_info=True)
            return None
        return token or None

    async def request(
        self, request: HttpRequest
    ) -> Result[HttpResponse[Any], AppError]:
        """
        Perform one logical call.

        Args:
            request: Request descriptor

        Returns:
            ``Result.ok(HttpResponse)`` on a 2xx response, otherwise
            ``Result.err(AppError)``: UNAUTHORIZED for 401, CONFLICT for 409,
            NETWORK when no response was obtained, UNKNOWN for anything else
        """
        if not request.skip_interceptors and self.config.request_interceptor:
            request = await _resolve(self.config.request_interceptor(request))

        response, outcome = await self._attempt(request)

        if (
            response is not None
            and response.status_code == 401
            and not request.skip_interceptors
            and self.config.refresh_token is not None
        ):
            token = await self._refresh()
            if token is None:
                return outcome
            self.logger.debug(f"Retrying {request.method} {request.url} after refresh")
            _, outcome = await self._attempt(request, token_override=token)

        return outcome

    async def request_or_raise(self, request: HttpRequest) -> HttpResponse[Any]:
        """
        Perform ``request`` and raise its failure instead of returning it.

        Used to run the client inside a ``RetryPolicy`` or ``CircuitBreaker``.

        Raises:
            RequestFailedError: carrying the AppError of a failed call
        """
        return (await self.request(request)).unwrap_or_raise()

    async def get(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> Result[HttpResponse[Any], AppError]:
        return await self.request(HttpRequest("GET", url, headers=headers))

    async def post(
        self,
        url: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Result[HttpResponse[Any], AppError]:
        return await self.request(HttpRequest("POST", url, headers=headers, body=body))

    async def put(
        self,
        url: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Result[HttpResponse[Any], AppError]:
        return await self.request(HttpRequest("PUT", url, headers=headers, body=body))

    async def patch(
        self,
        url: str,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Result[HttpResponse[Any], AppError]:
        return await self.request(
            HttpRequest("PATCH", url, headers=headers, body=body)
        )

    async def delete(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> Result[HttpResponse[Any], AppError]:
        return await self.request(HttpRequest("DELETE", url, headers=headers))


@asynccontextmanager
async def create_http_client(
    config: Optional[ClientConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncGenerator[HttpClient, None]:
    """
    Async context manager for creating and managing an HTTP client.

    Args:
        config: Client configuration
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``)

    Yields:
        Configured HttpClient instance
    """
    client = HttpClient(config, transport=transport)
    try:
        client._ensure_initialized()
        yield client
    finally:
        await client.close()

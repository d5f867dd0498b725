"""
Auth session repositories.

``HttpAuthRepository`` talks to the backend; ``InMemoryAuthRepository``
serves a built-in demo account. ``create_auth_repository`` picks one from
``AppSettings.use_http``.

The HTTP repository composes the client with the retry policy: every call
runs ``HttpClient.request_or_raise`` through a ``RetryPolicy`` and the outcome
is translated back into a ``Result`` with ``capture``.

Expected API endpoints:
- POST /auth/login   -> {"user": {...}, "token": "..."}
- GET  /auth/session -> {"user": {...}, "token": "..."} or null
- POST /auth/logout  -> anything
"""

import re
from typing import Any, Callable, Optional, Protocol

from pydantic import BaseModel, ValidationError

from .client import HttpClient, HttpRequest
from .config import RetryConfig
from .errors import AppError
from .result import Result, capture
from .retry_policies import RetryPolicy
from .settings import AppSettings
from .telemetry import LoggerPort, TelemetryLoggerPort, TelemetryPort

TOKEN_KEY = "auth.token"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class User(BaseModel):
    id: str
    email: str
    name: str


class Session(BaseModel):
    user: User
    token: str


class Credentials(BaseModel):
    email: str
    password: str


class AuthRepository(Protocol):
    """Login, session lookup and logout returning typed outcomes."""

    async def login(self, credentials: Credentials) -> Result[Session, AppError]: ...

    async def current_session(self) -> Result[Optional[Session], AppError]: ...

    async def logout(self) -> Result[None, AppError]: ...


class TokenStore(Protocol):
    """Key-value persistence for session tokens."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryTokenStore:
    """Process-local token store."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


def token_provider(store: TokenStore) -> Callable[[], Optional[str]]:
    """Build a ``get_auth_token`` hook reading the stored session token."""
    return lambda: store.get(TOKEN_KEY)


def _parse_session(data: Any) -> Result[Optional[Session], AppError]:
    if data is None:
        return Result.ok(None)
    try:
        return Result.ok(Session.model_validate(data))
    except ValidationError as e:
        return Result.err(AppError.validation("Invalid session payload", cause=e))


class HttpAuthRepository:
    """
    Auth repository backed by the HTTP API.

    The session is cached on the instance after login or the first
    successful lookup, and its token is written to the token store so that
    ``token_provider(store)`` can feed it to the HTTP client.

    Retry policy defaults: 3 attempts, 0.1s base delay, 5s cap; only network
    failures and retryable status codes are retried.
    """

    def __init__(
        self,
        http_client: HttpClient,
        telemetry: TelemetryPort,
        token_store: Optional[TokenStore] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.http_client = http_client
        self.telemetry = telemetry
        self.token_store = token_store or InMemoryTokenStore()
        self.retry_policy = retry_policy or RetryPolicy(
            RetryConfig(max_attempts=3, base_delay_seconds=0.1, max_delay_seconds=5.0)
        )
        self._session_cache: Optional[Session] = None

    async def _call(self, request: HttpRequest) -> Result[Any, AppError]:
        result = await capture(
            lambda: self.retry_policy.execute(
                lambda: self.http_client.request_or_raise(request)
            )
        )
        return result.map(lambda response: response.data)

    def _remember(self, session: Optional[Session]) -> None:
        self._session_cache = session
        if session is None:
            self.token_store.remove(TOKEN_KEY)
        else:
            self.token_store.set(TOKEN_KEY, session.token)

    async def login(self, credentials: Credentials) -> Result[Session, AppError]:
        self.telemetry.track("auth.login.attempt", {"email": credentials.email})

        result = await self._call(
            HttpRequest("POST", "/auth/login", body=credentials)
        )
        if result.is_ok:
            parsed = _parse_session(result.value)
            if parsed.is_ok and parsed.value is None:
                parsed = Result.err(AppError.validation("Empty session payload"))
            result = parsed

        if result.is_err:
            self.telemetry.track("auth.login.error", {"kind": result.error.kind.value})
            return result

        session = result.value
        self._remember(session)
        self.telemetry.track("auth.login.success", {"user_id": session.user.id})
        return Result.ok(session)

    async def current_session(self) -> Result[Optional[Session], AppError]:
        if self._session_cache is not None:
            return Result.ok(self._session_cache)

        result = await self._call(HttpRequest("GET", "/auth/session"))
        if result.is_ok:
            result = _parse_session(result.value)

        if result.is_err:
            self.telemetry.track("auth.session.error", {"kind": result.error.kind.value})
            return result

        self._remember(result.value)
        return result

    async def logout(self) -> Result[None, AppError]:
        self.telemetry.track("auth.logout.attempt")

        result = await self._call(HttpRequest("POST", "/auth/logout", body={}))
        if result.is_err:
            self.telemetry.track("auth.logout.error", {"kind": result.error.kind.value})
            return Result.err(result.error)

        self._remember(None)
        self.telemetry.track("auth.logout.success")
        return Result.ok(None)


class InMemoryAuthRepository:
    """
    Auth repository with a single built-in demo account.

    Needs no backend; used for development and tests. Credentials are
    checked for shape first (an email address and a password of at least
    six characters), then against the demo account.
    """

    DEMO_USER = User(id="user-1", email="demo@example.com", name="Demo User")
    DEMO_PASSWORD = "demo123"
    DEMO_TOKEN = "demo-token"

    def __init__(self, logger: LoggerPort, token_store: Optional[TokenStore] = None):
        self.logger = logger
        self.token_store = token_store or InMemoryTokenStore()
        token = self.token_store.get(TOKEN_KEY)
        self._session: Optional[Session] = (
            Session(user=self.DEMO_USER, token=token)
            if token == self.DEMO_TOKEN
            else None
        )

    async def login(self, credentials: Credentials) -> Result[Session, AppError]:
        well_formed = (
            _EMAIL_PATTERN.match(credentials.email) is not None
            and len(credentials.password) >= 6
        )
        if not well_formed:
            return Result.err(AppError.validation("Invalid credentials"))

        if (
            credentials.email != self.DEMO_USER.email
            or credentials.password != self.DEMO_PASSWORD
        ):
            self.logger.warn("Login rejected", {"email": credentials.email})
            return Result.err(AppError.unauthorized("Incorrect email or password"))

        self._session = Session(user=self.DEMO_USER, token=self.DEMO_TOKEN)
        self.token_store.set(TOKEN_KEY, self.DEMO_TOKEN)
        return Result.ok(self._session)

    async def current_session(self) -> Result[Optional[Session], AppError]:
        return Result.ok(self._session)

    async def logout(self) -> Result[None, AppError]:
        self._session = None
        self.token_store.remove(TOKEN_KEY)
        return Result.ok(None)


def create_auth_repository(
    settings: AppSettings,
    telemetry: TelemetryLoggerPort,
    http_client: Optional[HttpClient] = None,
    token_store: Optional[TokenStore] = None,
) -> AuthRepository:
    """
    Pick the auth repository selected by ``settings.use_http``.

    Args:
        settings: Application settings
        telemetry: Sink used for events and warnings
        http_client: Client for the HTTP-backed repository
        token_store: Shared token store; defaults to a fresh in-memory one

    Raises:
        ValueError: If ``use_http`` is set but no client is given
    """
    if settings.use_http:
        if http_client is None:
            raise ValueError("use_http is enabled but no HttpClient was given")
        return HttpAuthRepository(http_client, telemetry, token_store)
    return InMemoryAuthRepository(telemetry, token_store)

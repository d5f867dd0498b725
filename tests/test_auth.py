"""
Tests for the auth repositories.

For the HTTP repository a small FastAPI app stands in for the backend and is served to the client
through httpx.ASGITransport, so the full request path (headers, token
refresh, retry policy, Result translation) runs without a network.
"""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI, Header, HTTPException
from httpx import ASGITransport

from resilient_http.auth import (
    TOKEN_KEY,
    Credentials,
    HttpAuthRepository,
    InMemoryAuthRepository,
    InMemoryTokenStore,
    create_auth_repository,
    token_provider,
)
from resilient_http.client import HttpClient
from resilient_http.config import ClientConfig, RetryConfig
from resilient_http.errors import ErrorKind
from resilient_http.retry_policies import RetryPolicy
from resilient_http.settings import AppSettings

USER = {"id": "u-1", "email": "ada@example.com", "name": "Ada"}


class BackendState:
    def __init__(self):
        self.failures_before_success = 0
        self.calls = {"login": 0, "session": 0, "logout": 0}
        self.valid_tokens = {"token-1"}
        self.session_payload = None
        self.return_null = False


def build_app(state: BackendState) -> FastAPI:
    app = FastAPI()

    @app.post("/auth/login")
    async def login(credentials: dict):
        state.calls["login"] += 1
        if state.failures_before_success > 0:
            state.failures_before_success -= 1
            raise HTTPException(status_code=503, detail="warming up")
        if credentials.get("password") != "secret":
            raise HTTPException(status_code=401, detail="bad credentials")
        return {"user": USER, "token": "token-1"}

    @app.get("/auth/session")
    async def session(authorization: str = Header(default="")):
        state.calls["session"] += 1
        token = authorization.removeprefix("Bearer ")
        if token not in state.valid_tokens:
            raise HTTPException(status_code=401, detail="expired")
        if state.return_null:
            return None
        if state.session_payload is not None:
            return state.session_payload
        return {"user": USER, "token": token}

    @app.post("/auth/logout")
    async def logout():
        state.calls["logout"] += 1
        if state.failures_before_success > 0:
            raise HTTPException(status_code=409, detail="already logged out")
        return {"ok": True}

    return app


class RecordingTelemetry:
    def __init__(self):
        self.events = []

    def track(self, event, data=None):
        self.events.append((event, data or {}))

    @property
    def names(self):
        return [name for name, _ in self.events]


async def no_sleep(_seconds):
    return None


@pytest.fixture
def state():
    return BackendState()


@pytest.fixture
def store():
    return InMemoryTokenStore()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
async def http_client(state, store):
    config = ClientConfig(
        base_url="http://testserver",
        get_auth_token=token_provider(store),
    )
    async with HttpClient(
        config, transport=ASGITransport(app=build_app(state))
    ) as client:
        yield client


@pytest.fixture
def repository(http_client, telemetry, store):
    policy = RetryPolicy(RetryConfig(max_attempts=3), sleep=no_sleep)
    return HttpAuthRepository(http_client, telemetry, store, retry_policy=policy)


class TestLogin:
    """Test login through the repository."""

    async def test_login_success_stores_token(self, repository, store, telemetry):
        result = await repository.login(
            Credentials(email="ada@example.com", password="secret")
        )

        assert result.is_ok
        assert result.value.user.name == "Ada"
        assert store.get(TOKEN_KEY) == "token-1"
        assert telemetry.names == ["auth.login.attempt", "auth.login.success"]
        assert telemetry.events[1][1] == {"user_id": "u-1"}

    async def test_login_retries_transient_failures(self, repository, state):
        state.failures_before_success = 2

        result = await repository.login(
            Credentials(email="ada@example.com", password="secret")
        )

        assert result.is_ok
        assert state.calls["login"] == 3

    async def test_login_gives_up_after_max_attempts(self, repository, state, telemetry):
        state.failures_before_success = 5

        result = await repository.login(
            Credentials(email="ada@example.com", password="secret")
        )

        assert result.error.kind is ErrorKind.UNKNOWN
        assert result.error.status_code == 503
        assert state.calls["login"] == 3
        assert telemetry.events[-1] == ("auth.login.error", {"kind": "Unknown"})

    async def test_wrong_password_is_unauthorized_without_retry(
        self, repository, state, store
    ):
        result = await repository.login(
            Credentials(email="ada@example.com", password="nope")
        )

        assert result.error.kind is ErrorKind.UNAUTHORIZED
        assert state.calls["login"] == 1
        assert store.get(TOKEN_KEY) is None


class TestSession:
    """Test session lookup."""

    async def test_session_uses_stored_token_and_caches(
        self, repository, store, state
    ):
        store.set(TOKEN_KEY, "token-1")

        first = await repository.current_session()
        second = await repository.current_session()

        assert first.value.token == "token-1"
        assert second.value == first.value
        assert state.calls["session"] == 1

    async def test_session_without_token_is_unauthorized(self, repository, telemetry):
        result = await repository.current_session()

        assert result.error.kind is ErrorKind.UNAUTHORIZED
        assert telemetry.events == [("auth.session.error", {"kind": "Unauthorized"})]

    async def test_null_session_is_ok_none(self, repository, store, state):
        store.set(TOKEN_KEY, "token-1")
        state.return_null = True

        result = await repository.current_session()

        assert result.is_ok
        assert result.value is None
        assert store.get(TOKEN_KEY) is None

    async def test_invalid_session_payload_is_validation_error(
        self, repository, store, state
    ):
        store.set(TOKEN_KEY, "token-1")
        state.session_payload = {"user": None}

        result = await repository.current_session()

        assert result.error.kind is ErrorKind.VALIDATION

    async def test_expired_token_refreshed_by_client_hook(self, state, store, telemetry):
        store.set(TOKEN_KEY, "expired")
        state.valid_tokens = {"token-2"}
        refreshed = []

        async def refresh():
            refreshed.append(True)
            store.set(TOKEN_KEY, "token-2")
            return "token-2"

        config = ClientConfig(
            base_url="http://testserver",
            get_auth_token=token_provider(store),
            refresh_token=refresh,
        )
        async with HttpClient(
            config, transport=ASGITransport(app=build_app(state))
        ) as client:
            repository = HttpAuthRepository(client, telemetry, store)
            result = await repository.current_session()

        assert result.value.token == "token-2"
        assert refreshed == [True]
        assert state.calls["session"] == 2


class TestLogout:
    """Test logout."""

    async def test_logout_clears_session(self, repository, store, telemetry):
        await repository.login(Credentials(email="ada@example.com", password="secret"))

        result = await repository.logout()

        assert result.is_ok
        assert result.value is None
        assert store.get(TOKEN_KEY) is None
        assert telemetry.names[-2:] == ["auth.logout.attempt", "auth.logout.success"]

    async def test_logout_conflict(self, repository, state, telemetry):
        state.failures_before_success = 1

        result = await repository.logout()

        assert result.error.kind is ErrorKind.CONFLICT
        assert state.calls["logout"] == 1
        assert telemetry.events[-1] == ("auth.logout.error", {"kind": "Conflict"})


class TestInMemoryAuthRepository:
    """Test the demo-account repository."""

    @pytest.fixture
    def logger(self):
        return Mock()

    @pytest.fixture
    def memory_repository(self, logger, store):
        return InMemoryAuthRepository(logger, store)

    async def test_login_with_demo_account(self, memory_repository, store):
        result = await memory_repository.login(
            Credentials(email="demo@example.com", password="demo123")
        )

        assert result.value.user.email == "demo@example.com"
        assert result.value.token == "demo-token"
        assert store.get(TOKEN_KEY) == "demo-token"

    async def test_malformed_credentials_are_validation_errors(self, memory_repository):
        result = await memory_repository.login(
            Credentials(email="wrong@example.com", password="wrong")
        )

        assert result.error.kind is ErrorKind.VALIDATION

    async def test_wrong_password_is_unauthorized(self, memory_repository, logger):
        result = await memory_repository.login(
            Credentials(email="demo@example.com", password="not-it")
        )

        assert result.error.kind is ErrorKind.UNAUTHORIZED
        logger.warn.assert_called_once_with(
            "Login rejected", {"email": "demo@example.com"}
        )

    async def test_logout_clears_session(self, memory_repository, store):
        await memory_repository.login(
            Credentials(email="demo@example.com", password="demo123")
        )

        assert (await memory_repository.logout()).is_ok
        assert (await memory_repository.current_session()).value is None
        assert store.get(TOKEN_KEY) is None

    async def test_session_restored_from_store(self, logger, store):
        store.set(TOKEN_KEY, "demo-token")

        result = await InMemoryAuthRepository(logger, store).current_session()

        assert result.value.user.id == "user-1"


class TestCreateAuthRepository:
    """Test repository selection from settings."""

    def test_in_memory_by_default(self):
        settings = AppSettings(_env_file=None, use_http=False)

        repository = create_auth_repository(settings, Mock())

        assert isinstance(repository, InMemoryAuthRepository)

    async def test_http_when_enabled(self, http_client, store):
        settings = AppSettings(_env_file=None, use_http=True)

        repository = create_auth_repository(settings, Mock(), http_client, store)

        assert isinstance(repository, HttpAuthRepository)
        assert repository.token_store is store

    def test_http_requires_client(self):
        settings = AppSettings(_env_file=None, use_http=True)

        with pytest.raises(ValueError):
            create_auth_repository(settings, Mock())

import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from prisma.errors import UniqueViolationError

from goaltracker.config import Settings
from goaltracker.core.database import get_db
from goaltracker.core.oauth import GitHubIdentityProvider, OAuthStateSigner, ProviderProfile
from goaltracker.core.security import TokenService
from goaltracker.main import create_app
from goaltracker.services.user_service import resolve_principal

TEST_SECRET = "test-signing-secret-0123456789abcdef"
MISSING_ID = "5b0f7a52-0000-4000-8000-000000000000"


def goal_payload(**overrides) -> dict:
    payload = {
        "title": "Run a marathon",
        "description": "Train four times a week and finish a full marathon.",
        "category": "health",
        "priority": "high",
        "targetDate": (datetime.now(UTC) + timedelta(days=120)).isoformat(),
    }
    payload.update(overrides)
    return payload


# ============================================================================
# In-memory stand-in for the Prisma client
# ============================================================================


class MockPrismaModel:
    """
    Mock of one Prisma model action namespace (db.user, db.goal, ...).

    Supports the equality-only where clauses, nested creates, includes and
    ordering the services use. Every action yields to the event loop first so
    concurrent requests interleave the way they would against a database.
    """

    def __init__(self, db, name, defaults, unique=(), relations=None, cascade=None):
        self._db = db
        self.name = name
        self._defaults = defaults
        self._unique = unique
        # relation name -> (model name, foreign key on the child)
        self._relations = relations or {}
        self._cascade = cascade or {}
        self.records: list[dict] = []

    def _matches(self, record, where):
        return all(record.get(key) == value for key, value in (where or {}).items())

    def _materialize(self, record, include=None):
        values = {k: v for k, v in record.items() if not k.startswith("_")}
        for relation, (model_name, fk) in self._relations.items():
            child_model = getattr(self._db, model_name)
            if include and include.get(relation):
                children = [r for r in child_model.records if r[fk] == record["id"]]
                values[relation] = [child_model._materialize(r) for r in children]
            else:
                values[relation] = None
        return SimpleNamespace(**values)

    def _insert(self, data):
        for fields in self._unique:
            for existing in self.records:
                if all(existing.get(f) == data.get(f) for f in fields):
                    raise UniqueViolationError(
                        {
                            "user_facing_error": {
                                "error_code": "P2002",
                                "message": f"Unique constraint failed on the fields: {fields}",
                            }
                        }
                    )
        now = datetime.now(UTC)
        record = {"id": str(uuid.uuid4()), **self._defaults(), **data}
        record.setdefault("createdAt", now)
        record["updatedAt"] = now
        record["_seq"] = self._db.next_seq()
        self.records.append(record)
        return record

    async def find_first(self, where=None, include=None, **_):
        await asyncio.sleep(0)
        for record in self.records:
            if self._matches(record, where):
                return self._materialize(record, include)
        return None

    async def find_unique(self, where, include=None):
        return await self.find_first(where=where, include=include)

    async def find_many(self, where=None, include=None, order=None, skip=None, take=None):
        await asyncio.sleep(0)
        found = [r for r in self.records if self._matches(r, where)]
        if order:
            (field, direction), = order.items()
            found.sort(key=lambda r: (r[field], r["_seq"]), reverse=direction == "desc")
        start = skip or 0
        end = start + take if take is not None else None
        return [self._materialize(r, include) for r in found[start:end]]

    async def count(self, where=None):
        await asyncio.sleep(0)
        return sum(1 for r in self.records if self._matches(r, where))

    async def create(self, data, include=None):
        await asyncio.sleep(0)
        data = dict(data)
        nested = {}
        for relation in self._relations:
            if isinstance(data.get(relation), dict):
                nested[relation] = data.pop(relation)["create"]
        record = self._insert(data)
        for relation, children in nested.items():
            model_name, fk = self._relations[relation]
            for child in children:
                getattr(self._db, model_name)._insert({**child, fk: record["id"]})
        return self._materialize(record, include)

    async def update(self, where, data, include=None):
        await asyncio.sleep(0)
        for record in self.records:
            if self._matches(record, where):
                record.update(data)
                record["updatedAt"] = datetime.now(UTC)
                return self._materialize(record, include)
        return None

    async def update_many(self, where, data):
        await asyncio.sleep(0)
        count = 0
        for record in self.records:
            if self._matches(record, where):
                record.update(data)
                record["updatedAt"] = datetime.now(UTC)
                count += 1
        return count

    async def delete_many(self, where=None):
        await asyncio.sleep(0)
        doomed = [r for r in self.records if self._matches(r, where)]
        self.records = [r for r in self.records if r not in doomed]
        for model_name, fk in self._cascade.items():
            child_model = getattr(self._db, model_name)
            ids = {r["id"] for r in doomed}
            child_model.records = [r for r in child_model.records if r[fk] not in ids]
        return len(doomed)


class MockPrismaClient:
    """Mock Prisma client exposing user, goal and milestone models."""

    def __init__(self):
        self._seq = 0
        self.user = MockPrismaModel(
            self,
            "user",
            lambda: {
                "displayName": None,
                "email": None,
                "avatarUrl": None,
                "lastLogin": datetime.now(UTC),
            },
            unique=[("provider", "providerId")],
        )
        self.goal = MockPrismaModel(
            self,
            "goal",
            lambda: {
                "status": "not_started",
                "priority": "medium",
                "startDate": datetime.now(UTC),
                "progress": 0.0,
            },
            relations={"milestones": ("milestone", "goalId")},
            cascade={"milestone": "goalId"},
        )
        self.milestone = MockPrismaModel(
            self,
            "milestone",
            lambda: {
                "description": None,
                "completed": False,
                "completedAt": None,
                "dueDate": None,
            },
        )

    def next_seq(self):
        self._seq += 1
        return self._seq


# ============================================================================
# Simulated GitHub
# ============================================================================


class FakeGitHub:
    """Request handler for httpx.MockTransport that plays GitHub's OAuth and user APIs."""

    def __init__(self):
        self.valid_codes = {"good-code"}
        self.user = {
            "id": 42,
            "login": "alice",
            "name": "Alice Example",
            "email": None,
            "avatar_url": "https://avatars.example.com/u/42",
        }
        self.emails = []
        self.token_error: Exception | None = None
        self.user_status = 200
        self.emails_status = 200
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/login/oauth/access_token":
            if self.token_error is not None:
                raise self.token_error
            form = parse_qs(request.content.decode())
            if form.get("code", [None])[0] not in self.valid_codes:
                return httpx.Response(
                    200,
                    json={
                        "error": "bad_verification_code",
                        "error_description": "The code passed is incorrect or expired.",
                    },
                )
            return httpx.Response(
                200,
                json={"access_token": "gho_test_token", "token_type": "bearer", "scope": "read:user"},
            )

        if request.headers.get("Authorization") != "Bearer gho_test_token":
            return httpx.Response(401, json={"message": "Bad credentials"})
        if path == "/user":
            return httpx.Response(self.user_status, json=self.user)
        if path == "/user/emails":
            return httpx.Response(self.emails_status, json=self.emails)
        return httpx.Response(404, json={"message": "Not Found"})


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        JWT_SECRET=TEST_SECRET,
        GITHUB_CLIENT_ID="test-client-id",
        GITHUB_CLIENT_SECRET="test-client-secret",
        GITHUB_CALLBACK_URL="http://test/auth/callback",
    )


@pytest.fixture
def db() -> MockPrismaClient:
    return MockPrismaClient()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
async def identity_provider(settings, fake_github) -> AsyncGenerator[GitHubIdentityProvider, None]:
    provider = GitHubIdentityProvider(
        client_id=settings.GITHUB_CLIENT_ID,
        client_secret=settings.GITHUB_CLIENT_SECRET,
        redirect_uri=settings.GITHUB_CALLBACK_URL,
        state_signer=OAuthStateSigner(TEST_SECRET),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_github.handler)),
    )
    yield provider
    await provider.aclose()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def app(settings, identity_provider, token_service, db):
    application = create_app(
        settings,
        identity_provider=identity_provider,
        token_service=token_service,
    )

    async def override_get_db():
        return db

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Client bound to the app without running its lifespan, so no real
    database connection is attempted.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_principal(db):
    """Create (or log in) a principal the same way the OAuth callback does."""

    async def _make(subject_id: str = "42", username: str = "alice", email: str | None = None):
        profile = ProviderProfile(
            provider="github",
            subject_id=subject_id,
            username=username,
            email=email,
        )
        return await resolve_principal(db, profile)

    return _make


@pytest.fixture
def auth_headers(token_service):
    """Build bearer headers for a principal."""

    def _headers(principal) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_service.issue(principal)}"}

    return _headers


@pytest.fixture
async def alice(make_principal, auth_headers):
    return auth_headers(await make_principal(subject_id="1", username="alice"))


@pytest.fixture
async def bob(make_principal, auth_headers):
    return auth_headers(await make_principal(subject_id="2", username="bob"))

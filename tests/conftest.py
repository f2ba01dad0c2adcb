"""Shared test fixtures for the Config API test suite.

Every test gets a fresh SQLite database file (via aiosqlite) holding both
the configuration tables and the MojoPortal directory tables, and a fake
MFA secret service served through ``httpx.MockTransport``. The app is
driven in-process with ``httpx.AsyncClient`` over ``ASGITransport``.
"""

import os

# Plain-text logs in test output; must be set before app imports.
os.environ["LOG_FORMAT"] = "text"

import json
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from configapi.core.config import Settings
from configapi.core.token_factory import issue_mfa_token, issue_session_token, issue_token
from configapi.database import Base, Database, DirectoryBase
from configapi.main import create_app
from configapi.models import (
    ConfigOverride,
    CustomerLink,
    DataTypeValue,
    DirectoryRole,
    DirectoryUser,
    DirectoryUserRole,
    FileSpec,
    SectionSpec,
)
from configapi.services.mfa_client import MfaSecretClient

JWT_SECRET = "test-jwt-secret"
MOJO_SECRET = "test-mojo-secret"
MFA_SERVICE_URL = "http://mfa.test"
MFA_SERVICE_CODE = "function-key"

EMPLOYEE = "MSPB_Employees"
CONFIG_ADMIN = "Customer Config Admin"


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key=JWT_SECRET,
        mojo_jwt_secret=MOJO_SECRET,
        mfa_service_url=MFA_SERVICE_URL,
        mfa_service_code=MFA_SERVICE_CODE,
        log_format="text",
    )
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Fake MFA secret service
# ---------------------------------------------------------------------------


class FakeMfaService:
    """In-memory stand-in for the MFA secret service.

    ``fail_with`` makes every call answer with that status code;
    ``reset_connection`` makes every call fail with a reset connection;
    ``no_data_as_json`` switches the "no secret" answer between the two
    shapes the real service uses.
    """

    def __init__(self):
        self.records: Dict[str, dict] = {}
        self.calls: list[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.reset_connection = False
        self.no_data_as_json = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.reset_connection:
            raise httpx.ReadError("connection reset by peer", request=request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, text="upstream exploded: secret=ABCDEFGHIJKL")

        params = request.url.params
        if params.get("code") != MFA_SERVICE_CODE:
            return httpx.Response(401, text="bad function key")
        user = params.get("user", "")

        if request.method == "GET":
            record = self.records.get(user)
            if record is None:
                if self.no_data_as_json:
                    return httpx.Response(200, json={"errorMsg": "No data found"})
                return httpx.Response(200, text="No data")
            return httpx.Response(200, json=record)

        body = json.loads(request.content or b"{}")
        if params.get("timeStampOnly") == "true":
            record = self.records.get(user)
            if record is not None and record["key"] == body.get("secret"):
                record["last_auth"] = datetime.now(timezone.utc).isoformat()
            return httpx.Response(200, text="OK")

        self.records[user] = {"key": body["secret"], "last_auth": None}
        return httpx.Response(200, text="")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


class Seeder:
    """Inserts fixture rows through their own short-lived sessions."""

    def __init__(self, database: Database):
        self.database = database
        self._roles: Dict[str, int] = {}

    async def _add(self, *objects):
        async with self.database.session() as session:
            session.add_all(objects)
            await session.commit()
            for obj in objects:
                await session.refresh(obj)
        return objects[0] if len(objects) == 1 else objects

    async def user(
        self,
        user_id: int,
        login: str,
        customer_id: Optional[str] = None,
        roles: Iterable[str] = (),
        email: Optional[str] = None,
        deleted: bool = False,
    ) -> DirectoryUser:
        user = DirectoryUser(
            user_id=user_id,
            login_name=login,
            email=email or f"{login}@example.com",
            name=login.title(),
            is_deleted=deleted,
        )
        await self._add(user)
        if customer_id is not None:
            await self._add(CustomerLink(login_name=login, cid=customer_id))
        for role in roles:
            if role not in self._roles:
                created = await self._add(DirectoryRole(role_name=role, display_name=role))
                self._roles[role] = created.role_id
            await self._add(DirectoryUserRole(user_id=user_id, role_id=self._roles[role]))
        return user

    async def override(
        self,
        level: str,
        category: str,
        section: str,
        prop: str,
        value: str,
        customer_id: Optional[str] = None,
        organization: Optional[str] = None,
        site: Optional[str] = None,
        agent: Optional[str] = None,
        **extra,
    ) -> ConfigOverride:
        extra.setdefault("is_custom", level != "GLOBAL")
        return await self._add(ConfigOverride(
            level=level,
            customer_id=customer_id,
            organization=organization,
            site=site,
            agent=agent,
            category=category,
            section=section,
            property=prop,
            value=value,
            **extra,
        ))

    async def file_spec(self, name: str, **extra) -> FileSpec:
        return await self._add(FileSpec(f_name=name, **extra))

    async def section_spec(self, file_spec_id: int, name: str, **extra) -> SectionSpec:
        return await self._add(SectionSpec(file_spec_id=file_spec_id, section_name=name, **extra))

    async def data_type_value(self, data_type_id: int, value: str, **extra) -> DataTypeValue:
        return await self._add(DataTypeValue(data_type_id=data_type_id, value=value, **extra))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
async def database(tmp_path):
    """Fresh file-backed database with both schemas."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'config.db'}", name="test")
    await db.create_all(Base.metadata, DirectoryBase.metadata)
    yield db
    await db.dispose()


@pytest.fixture()
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture()
def seed(database) -> Seeder:
    return Seeder(database)


@pytest.fixture()
def mfa_service() -> FakeMfaService:
    return FakeMfaService()


@pytest.fixture()
async def mfa_client(settings, mfa_service):
    client = MfaSecretClient(settings, transport=mfa_service.transport(), retry_base_delay=0)
    yield client
    await client.aclose()


@pytest.fixture()
def make_client(database, mfa_client):
    """Build an ``AsyncClient`` for an app configured with *settings*."""

    def _make(settings: Settings) -> AsyncClient:
        app = create_app(
            settings=settings,
            config_db=database,
            directory_db=database,
            mfa_client=mfa_client,
        )
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


@pytest.fixture()
async def client(make_client, settings):
    async with make_client(settings) as c:
        yield c


def session_token(user: DirectoryUser, customer_id: Optional[str] = None, ttl: float = 3600) -> str:
    return issue_session_token(
        username=user.login_name,
        user_id=user.user_id,
        email=user.email,
        customer_id=customer_id,
        secret=JWT_SECRET,
        ttl_seconds=ttl,
    )


def mfa_token(username: str, ttl: float = 3600) -> str:
    return issue_mfa_token(username, JWT_SECRET, ttl)


def mojo_token(user_id, ttl: float = 300, secret: str = MOJO_SECRET) -> str:
    """Token as MojoPortal would mint it: no ``typ``, just a ``userId``."""
    return issue_token({"userId": user_id}, secret, ttl, now=time.time())


def login(client: AsyncClient, user: DirectoryUser, customer_id: Optional[str] = None, mfa: bool = True) -> None:
    """Put session (and MFA) cookies for *user* on *client*."""
    client.cookies.set("authToken", session_token(user, customer_id))
    if mfa:
        client.cookies.set("mfaToken", mfa_token(user.login_name))

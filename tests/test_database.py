"""Tests for database session handling."""

import pytest
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from conftest import login
from configapi.exceptions import ErrorCode, StorageUnavailableError
from configapi.services.hierarchy import HierarchyResolver


class TestSession:

    async def test_pool_timeout_becomes_storage_unavailable(self, database):
        with pytest.raises(StorageUnavailableError) as exc_info:
            async with database.session():
                raise PoolTimeoutError("QueuePool limit of size 10 overflow 0 reached")

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == ErrorCode.STORAGE_UNAVAILABLE
        assert isinstance(exc_info.value.__cause__, PoolTimeoutError)

    async def test_other_errors_pass_through(self, database):
        with pytest.raises(ValueError):
            async with database.session():
                raise ValueError("boom")


class TestPoolExhaustionResponse:

    async def test_request_gets_503(self, client, seed, monkeypatch):
        viewer = await seed.user(8, "viewer", customer_id="C1")
        login(client, viewer, customer_id="C1")

        async def exhausted(self, selector):
            raise PoolTimeoutError("QueuePool limit of size 10 overflow 0 reached")

        monkeypatch.setattr(HierarchyResolver, "resolve_overrides", exhausted)

        resp = await client.get("/api/configs/defaults", params={"category": "Backup"})

        assert resp.status_code == 503
        assert resp.json()["error"] == "STORAGE_UNAVAILABLE"

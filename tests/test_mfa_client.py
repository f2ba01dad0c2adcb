"""Tests for the MFA secret service client."""

import httpx
import pytest

from conftest import MFA_SERVICE_CODE
from configapi.exceptions import UpstreamError
from configapi.services.mfa_client import MAX_RETRIES, MfaRecord, MfaSecretClient, _parse_body


class TestParseBody:

    @pytest.mark.parametrize("text", ["", "  ", "OK", '"OK"'])
    def test_acknowledgements(self, text):
        assert _parse_body(text) == {}

    @pytest.mark.parametrize(
        "text",
        ["No data", "no data for user", '{"errorMsg": "No data found"}', '{"errorMsg": "no data"}'],
    )
    def test_no_data_shapes(self, text):
        assert _parse_body(text) is None

    def test_record(self):
        assert _parse_body('{"key": "ABC", "last_auth": null}') == {"key": "ABC", "last_auth": None}

    @pytest.mark.parametrize("text", ["<html>", "[1, 2]", '{"errorMsg": "database down"}'])
    def test_unexpected_bodies(self, text):
        with pytest.raises(UpstreamError):
            _parse_body(text)


class TestMfaSecretClient:

    async def test_store_then_fetch(self, mfa_client, mfa_service):
        await mfa_client.set_secret("alice", "SECRETKEY")

        record = await mfa_client.get_secret("alice")

        assert record == MfaRecord(key="SECRETKEY", last_auth=None)
        request = mfa_service.calls[-1]
        assert request.url.path == "/api/mfa"
        assert request.url.params["code"] == MFA_SERVICE_CODE
        assert request.url.params["user"] == "alice"

    @pytest.mark.parametrize("as_json", [False, True])
    async def test_missing_user(self, mfa_client, mfa_service, as_json):
        mfa_service.no_data_as_json = as_json
        assert await mfa_client.get_secret("nobody") is None

    async def test_record_auth_sets_timestamp(self, mfa_client, mfa_service):
        await mfa_client.set_secret("alice", "SECRETKEY")

        await mfa_client.record_auth("alice", "SECRETKEY")

        record = await mfa_client.get_secret("alice")
        assert record.last_auth is not None
        assert mfa_service.calls[1].url.params["timeStampOnly"] == "true"

    async def test_server_errors_are_retried(self, mfa_client, mfa_service):
        mfa_service.fail_with = 503

        with pytest.raises(UpstreamError) as exc_info:
            await mfa_client.get_secret("alice")

        assert len(mfa_service.calls) == MAX_RETRIES
        assert exc_info.value.status_code == 502
        assert "secret=" not in exc_info.value.message

    async def test_client_errors_are_not_retried(self, mfa_client, mfa_service):
        mfa_service.fail_with = 404

        with pytest.raises(UpstreamError):
            await mfa_client.get_secret("alice")

        assert len(mfa_service.calls) == 1

    async def test_connection_errors_are_retried(self, settings):
        attempts = []

        def refuse(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = MfaSecretClient(settings, transport=httpx.MockTransport(refuse), retry_base_delay=0)
        try:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_secret("alice")
        finally:
            await client.aclose()

        assert len(attempts) == MAX_RETRIES
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    async def test_reset_connections_are_retried(self, mfa_client, mfa_service):
        mfa_service.reset_connection = True

        with pytest.raises(UpstreamError) as exc_info:
            await mfa_client.set_secret("alice", "JBSWY3DPEHPK3PXP")

        assert len(mfa_service.calls) == MAX_RETRIES
        assert isinstance(exc_info.value.original_error, httpx.ReadError)
        assert exc_info.value.status_code == 502

"""Tests for token issuing and verification."""

import time

import pytest

from configapi.core.token_factory import (
    BindingMismatchError,
    TokenExpiredError,
    TokenMalformedError,
    decode_mfa_token,
    decode_session_token,
    issue_mfa_token,
    issue_session_token,
    issue_token,
    verify_token,
)

SECRET = "unit-test-secret"


class TestVerifyToken:

    def test_round_trip_claims(self):
        token = issue_token({"sub": "alice", "userId": 7}, SECRET, 60, token_type="session", issuer="config-api")
        claims = verify_token(token, SECRET, token_type="session")
        assert claims["sub"] == "alice"
        assert claims["userId"] == 7
        assert claims["iss"] == "config-api"
        assert claims["exp"] - claims["iat"] == 60

    def test_wrong_secret_is_malformed(self):
        token = issue_token({"sub": "alice"}, SECRET, 60)
        with pytest.raises(TokenMalformedError):
            verify_token(token, "other-secret")

    def test_tampered_payload_is_malformed(self):
        token = issue_token({"sub": "alice"}, SECRET, 60)
        header, _, signature = token.split(".")
        forged = issue_token({"sub": "mallory"}, "attacker", 60).split(".")[1]
        with pytest.raises(TokenMalformedError):
            verify_token(f"{header}.{forged}.{signature}", SECRET)

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "not.a.token", "a.b.c.d"])
    def test_garbage_is_malformed(self, token):
        with pytest.raises(TokenMalformedError):
            verify_token(token, SECRET)

    def test_expiry_boundary(self):
        now = 1_700_000_000
        token = issue_token({"sub": "alice"}, SECRET, 30, now=now)
        verify_token(token, SECRET, now=now + 29)
        with pytest.raises(TokenExpiredError):
            verify_token(token, SECRET, now=now + 30)

    def test_expired_checked_before_type(self):
        token = issue_token({"sub": "alice"}, SECRET, -1, token_type="mfa")
        with pytest.raises(TokenExpiredError):
            verify_token(token, SECRET, token_type="session")

    def test_wrong_type_is_malformed(self):
        token = issue_token({"sub": "alice"}, SECRET, 60, token_type="mfa")
        with pytest.raises(TokenMalformedError):
            verify_token(token, SECRET, token_type="session")

    def test_missing_required_claim(self):
        token = issue_token({"sub": "alice"}, SECRET, 60)
        with pytest.raises(TokenMalformedError, match="userId"):
            verify_token(token, SECRET, required=("userId",))

    def test_binding_mismatch_reports_both_names(self):
        token = issue_token({"sub": "alice"}, SECRET, 60)
        with pytest.raises(BindingMismatchError) as exc_info:
            verify_token(token, SECRET, expected_binding="bob")
        assert exc_info.value.expected == "bob"
        assert exc_info.value.actual == "alice"


class TestSessionToken:

    def test_decode_returns_claims(self):
        token = issue_session_token("alice", 1, "alice@example.com", "C1", SECRET, 3600)
        claims = decode_session_token(token, SECRET)
        assert claims.username == "alice"
        assert claims.user_id == 1
        assert claims.email == "alice@example.com"
        assert claims.customer_id == "C1"
        assert claims.expires_at > claims.issued_at

    def test_mfa_token_is_not_a_session(self):
        token = issue_mfa_token("alice", SECRET, 3600)
        with pytest.raises(TokenMalformedError):
            decode_session_token(token, SECRET)


class TestMfaToken:

    def test_bound_to_issuing_user(self):
        token = issue_mfa_token("alice", SECRET, 3600)
        claims = decode_mfa_token(token, SECRET, "alice")
        assert claims.username == "alice"
        assert claims.mfa_verified is True

    def test_other_user_is_rejected(self):
        token = issue_mfa_token("alice", SECRET, 3600)
        with pytest.raises(BindingMismatchError):
            decode_mfa_token(token, SECRET, "bob")

    def test_expired(self):
        now = time.time()
        token = issue_mfa_token("alice", SECRET, 60, now=now - 120)
        with pytest.raises(TokenExpiredError):
            decode_mfa_token(token, SECRET, "alice", now=now)

    def test_unverified_flag_is_rejected(self):
        token = issue_token(
            {"sub": "alice", "mfaVerified": "true", "verifiedAt": int(time.time())},
            SECRET,
            60,
            token_type="mfa",
        )
        with pytest.raises(TokenMalformedError):
            decode_mfa_token(token, SECRET, "alice")

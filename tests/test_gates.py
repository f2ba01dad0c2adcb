"""Tests for the session, MFA and role gates."""

import pytest

from conftest import CONFIG_ADMIN, EMPLOYEE, make_settings
from configapi.core.auth import (
    Allow,
    AuthContext,
    Deny,
    GateStage,
    mfa_gate,
    raise_for,
    role_gate,
    session_gate,
)
from configapi.core.token_factory import issue_mfa_token, issue_session_token
from configapi.exceptions import AuthenticationError, ForbiddenError, MfaRequiredError

SETTINGS = make_settings()
SECRET = SETTINGS.jwt_secret_key
NOW = 1_700_000_000

ALICE = AuthContext(username="alice", user_id=1, customer_id="C1")


class TestSessionGate:

    def test_valid_token(self):
        token = issue_session_token("alice", 1, "a@example.com", "C1", SECRET, 3600, now=NOW)

        result = session_gate(token, SETTINGS, now=NOW + 10)

        assert isinstance(result, Allow)
        assert result.context.username == "alice"
        assert result.context.customer_id == "C1"
        assert result.context.roles == frozenset()
        assert result.context.mfa_verified is False

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token):
        assert session_gate(token, SETTINGS) == Deny(GateStage.SESSION, "No authentication token provided")

    def test_expired(self):
        token = issue_session_token("alice", 1, None, None, SECRET, 60, now=NOW)
        assert session_gate(token, SETTINGS, now=NOW + 61) == Deny(GateStage.SESSION, "Token expired")

    def test_signed_with_other_secret(self):
        token = issue_session_token("alice", 1, None, None, "other", 60, now=NOW)
        assert session_gate(token, SETTINGS, now=NOW) == Deny(GateStage.SESSION, "Invalid token")

    def test_mfa_token_is_not_a_session(self):
        token = issue_mfa_token("alice", SECRET, 60, now=NOW)
        assert isinstance(session_gate(token, SETTINGS, now=NOW), Deny)


class TestMfaGate:

    def test_bound_token_passes(self):
        token = issue_mfa_token("alice", SECRET, 3600, now=NOW)

        result = mfa_gate(ALICE, token, SETTINGS, now=NOW + 1)

        assert isinstance(result, Allow)
        assert result.context.mfa_verified is True

    def test_token_of_other_user_denied(self, caplog):
        """alice's MFA cookie does not verify bob's session."""
        token = issue_mfa_token("alice", SECRET, 3600, now=NOW)
        bob = AuthContext(username="bob", user_id=2)

        result = mfa_gate(bob, token, SETTINGS, now=NOW)

        assert result == Deny(GateStage.MFA, "MFA verification failed")
        assert "bound to another user" in caplog.text

    def test_missing(self):
        assert mfa_gate(ALICE, None, SETTINGS) == Deny(GateStage.MFA, "MFA required")

    def test_expired(self):
        token = issue_mfa_token("alice", SECRET, 60, now=NOW)
        assert mfa_gate(ALICE, token, SETTINGS, now=NOW + 60) == Deny(GateStage.MFA, "MFA expired")

    def test_session_token_is_not_mfa(self):
        token = issue_session_token("alice", 1, None, None, SECRET, 60, now=NOW)
        assert mfa_gate(ALICE, token, SETTINGS, now=NOW) == Deny(GateStage.MFA, "MFA verification failed")


class TestRoleGate:

    def test_any_listed_role_passes(self):
        ctx = AuthContext(username="alice", user_id=1, roles=frozenset({CONFIG_ADMIN}))
        assert isinstance(role_gate(ctx, [CONFIG_ADMIN, EMPLOYEE]), Allow)

    def test_no_requirement_passes(self):
        assert isinstance(role_gate(ALICE, []), Allow)

    def test_missing_role(self):
        assert role_gate(ALICE, [EMPLOYEE]) == Deny(GateStage.ROLE, "Insufficient permissions")


class TestRaiseFor:

    @pytest.mark.parametrize(
        "stage, exc_type, status",
        [
            (GateStage.SESSION, AuthenticationError, 401),
            (GateStage.MFA, MfaRequiredError, 403),
            (GateStage.ROLE, ForbiddenError, 403),
        ],
    )
    def test_mapping(self, stage, exc_type, status):
        with pytest.raises(exc_type) as exc_info:
            raise_for(Deny(stage, "nope"))
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "nope"

    def test_mfa_denial_asks_for_mfa(self):
        with pytest.raises(MfaRequiredError) as exc_info:
            raise_for(Deny(GateStage.MFA, "MFA required"))
        assert exc_info.value.to_dict()["requireMfa"] is True


class TestAuthContext:

    def test_customer_access(self):
        employee = AuthContext(username="e", user_id=3, roles=frozenset({EMPLOYEE}))

        assert ALICE.can_access_customer("C1")
        assert not ALICE.can_access_customer("C2")
        assert not ALICE.can_access_customer(None)
        assert employee.can_access_customer("C2")
        assert employee.is_employee and not ALICE.is_employee

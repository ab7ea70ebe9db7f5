"""Tests for access token issuance and validation."""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from app.core.authorization import Permission
from app.core.tokens import TokenSigner
from app.models.user import Role


@pytest.fixture
def signer(settings, fixed_clock):
    return TokenSigner(settings, clock=fixed_clock)


def _user(roles):
    return SimpleNamespace(id="user-123", email="alice@example.com", roles=set(roles))


class TestIssueAndValidate:

    def test_round_trip_preserves_claims(self, signer, fixed_clock):
        issued = signer.issue_access_token(_user([Role.user]))

        claims = signer.validate(issued.token)

        assert claims is not None
        assert claims.subject == "user-123"
        assert claims.email == "alice@example.com"
        assert claims.roles == frozenset({"User"})
        assert claims.permissions == frozenset()
        assert claims.issued_at == fixed_clock.now
        assert claims.expires_at == issued.expires_at
        assert issued.expires_at == fixed_clock.now + signer.access_token_ttl
        assert claims.token_id

    def test_admin_token_carries_permissions(self, signer):
        issued = signer.issue_access_token(_user([Role.user, Role.admin]))

        claims = signer.validate(issued.token)

        assert claims.roles == frozenset({"Admin", "User"})
        assert Permission.manage_roles in claims.permissions
        assert Permission.manage_users in claims.permissions

    def test_each_token_has_unique_id(self, signer):
        first = signer.validate(signer.issue_access_token(_user([Role.user])).token)
        second = signer.validate(signer.issue_access_token(_user([Role.user])).token)

        assert first.token_id != second.token_id

    def test_caller_cannot_override_registered_claims(self, signer, settings):
        issued = signer.issue("user-123", {"sub": "someone-else", "aud": "elsewhere", "scope": "x"},
                              timedelta(minutes=5))

        payload = signer.decode(issued.token)

        assert payload["sub"] == "user-123"
        assert payload["aud"] == settings.jwt_audience
        assert payload["scope"] == "x"


class TestExpiry:

    def test_valid_one_second_before_expiry(self, signer, fixed_clock):
        issued = signer.issue("user-123", {}, timedelta(seconds=60))

        fixed_clock.advance(seconds=59)

        assert signer.decode(issued.token) is not None

    def test_invalid_exactly_at_expiry(self, signer, fixed_clock):
        issued = signer.issue("user-123", {}, timedelta(seconds=60))

        fixed_clock.advance(seconds=60)

        assert signer.decode(issued.token) is None
        assert signer.validate(issued.token) is None

    def test_invalid_after_expiry(self, signer, fixed_clock):
        issued = signer.issue("user-123", {}, timedelta(minutes=15))

        fixed_clock.advance(minutes=16)

        assert signer.validate(issued.token) is None


class TestRejection:

    @pytest.mark.parametrize("field,value", [
        ("jwt_audience", "SomeOtherAudience"),
        ("jwt_issuer", "SomeOtherIssuer"),
        ("secret_key", "a-completely-different-secret-key-value"),
    ])
    def test_token_from_foreign_settings_is_rejected(self, settings, fixed_clock, signer, field, value):
        foreign = TokenSigner(settings.model_copy(update={field: value}), clock=fixed_clock)
        issued = foreign.issue_access_token(_user([Role.user]))

        assert signer.validate(issued.token) is None

    def test_other_algorithm_is_rejected(self, signer, settings, fixed_clock):
        now = int(fixed_clock.now.timestamp())
        token = jwt.encode(
            {"sub": "user-123", "iss": settings.jwt_issuer, "aud": settings.jwt_audience,
             "iat": now, "exp": now + 600},
            settings.secret_key,
            algorithm="HS512",
        )

        assert signer.validate(token) is None

    def test_missing_subject_is_rejected(self, signer, settings, fixed_clock):
        now = int(fixed_clock.now.timestamp())
        token = jwt.encode(
            {"iss": settings.jwt_issuer, "aud": settings.jwt_audience, "iat": now, "exp": now + 600},
            settings.secret_key,
            algorithm="HS256",
        )

        assert signer.validate(token) is None

    def test_missing_expiry_is_rejected(self, signer, settings, fixed_clock):
        now = int(fixed_clock.now.timestamp())
        token = jwt.encode(
            {"sub": "user-123", "iss": settings.jwt_issuer, "aud": settings.jwt_audience, "iat": now},
            settings.secret_key,
            algorithm="HS256",
        )

        assert signer.validate(token) is None

    @pytest.mark.parametrize("token", ["", None, "not-a-token", "a.b.c"])
    def test_garbage_is_rejected(self, signer, token):
        assert signer.validate(token) is None

"""
Unit tests for TokenAuthority.
"""

import pytest
from jose import jwt

from shared.errors import AuthenticationError
from service_proxy.app.auth.tokens import TokenAuthority


class TestTokenAuthority:
    """Test cases for TokenAuthority."""

    @pytest.fixture
    def authority(self):
        return TokenAuthority("signing-key", "test-issuer")

    def test_issue_and_verify(self, authority):
        token = authority.issue("alice", avatar="https://avatars.example/alice")

        claims = authority.verify(token)
        assert claims.subject == "alice"
        assert claims.claims["iss"] == "test-issuer"
        assert claims.claims["avatar"] == "https://avatars.example/alice"

    def test_wrong_key_is_rejected(self, authority):
        token = TokenAuthority("other-key", "test-issuer").issue("alice")

        with pytest.raises(AuthenticationError):
            authority.verify(token)

    def test_wrong_issuer_is_rejected(self, authority):
        token = TokenAuthority("signing-key", "someone-else").issue("alice")

        with pytest.raises(AuthenticationError):
            authority.verify(token)

    def test_missing_subject_is_rejected(self, authority):
        token = jwt.encode({"iss": "test-issuer"}, "signing-key", algorithm="HS256")

        with pytest.raises(AuthenticationError):
            authority.verify(token)

    def test_garbage_is_rejected(self, authority):
        with pytest.raises(AuthenticationError):
            authority.verify("not-a-jwt")

    def test_expiring_tokens(self):
        authority = TokenAuthority("signing-key", "test-issuer", ttl_seconds=-10)
        token = authority.issue("alice")

        with pytest.raises(AuthenticationError):
            authority.verify(token)

    def test_unconfigured_key(self):
        authority = TokenAuthority(None, "test-issuer")

        with pytest.raises(AuthenticationError):
            authority.issue("alice")
        with pytest.raises(AuthenticationError):
            authority.verify("token")

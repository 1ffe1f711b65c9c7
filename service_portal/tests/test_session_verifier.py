"""
Unit tests for session tokens and session verification.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from service_portal.app.adapters.credential_store import InMemoryCredentialStore
from service_portal.app.auth.sessions import FailureReason, SessionVerifier
from service_portal.app.auth.tokens import SessionTokenCodec
from shared.errors import InvalidSessionToken, StoreUnavailableError
from shared.metrics import MetricsCollector
from shared.test_helpers import token_factory


def make_request(cookies):
    request = MagicMock()
    request.cookies = cookies
    return request


class TestSessionTokenCodec:
    """Test cases for SessionTokenCodec."""

    @pytest.fixture
    def codec(self):
        return SessionTokenCodec("test-secret", ttl_seconds=3600)

    def test_issue_and_decode(self, codec):
        """Issued tokens decode to the same user."""
        decoded = codec.decode(codec.issue("user-123"))

        assert decoded.user_id == "user-123"
        assert decoded.expires_at - decoded.issued_at == 3600
        assert decoded.session_id

    def test_tokens_are_unique_per_issue(self, codec):
        assert codec.issue("user-123") != codec.issue("user-123")

    def test_decode_expired(self, codec):
        with pytest.raises(InvalidSessionToken) as exc_info:
            codec.decode(token_factory.expired("user-123"))
        assert exc_info.value.expired is True

    def test_decode_wrong_secret(self, codec):
        with pytest.raises(InvalidSessionToken) as exc_info:
            codec.decode(token_factory.wrong_secret("user-123"))
        assert exc_info.value.expired is False

    def test_decode_garbage(self, codec):
        with pytest.raises(InvalidSessionToken):
            codec.decode("not-a-jwt")

    def test_decode_without_subject(self, codec):
        with pytest.raises(InvalidSessionToken):
            codec.decode(token_factory.without_subject())

    def test_decode_foreign_issuer(self, codec):
        other = SessionTokenCodec("test-secret", issuer="someone-else")
        with pytest.raises(InvalidSessionToken):
            codec.decode(other.issue("user-123"))


class TestSessionVerifier:
    """Test cases for SessionVerifier."""

    @pytest.fixture
    def store(self):
        return InMemoryCredentialStore()

    @pytest.fixture
    def codec(self):
        return SessionTokenCodec("test-secret")

    @pytest.fixture
    def verifier(self, codec, store):
        return SessionVerifier(codec, store, lookup_timeout=0.5)

    @pytest.mark.asyncio
    async def test_valid_session(self, verifier, codec, store):
        """A valid token for an existing user yields that user's identity."""
        user = await store.create_user("Ansh Vohra", "ansh@example.com", "hash")

        result = await verifier.verify(make_request({"token": codec.issue(user.id)}))

        assert result.authenticated is True
        assert result.reason is None
        assert result.identity.user_id == user.id
        assert result.identity.name == "Ansh Vohra"
        assert result.identity.display_attributes["email"] == "ansh@example.com"

    @pytest.mark.asyncio
    async def test_missing_cookie(self, verifier):
        result = await verifier.verify(make_request({}))

        assert result.authenticated is False
        assert result.reason is FailureReason.MISSING_TOKEN

    @pytest.mark.asyncio
    async def test_empty_cookie(self, verifier):
        result = await verifier.verify(make_request({"token": ""}))

        assert result.reason is FailureReason.MISSING_TOKEN

    @pytest.mark.asyncio
    async def test_custom_cookie_name(self, codec, store):
        user = await store.create_user("Ansh Vohra", "ansh@example.com", "hash")
        verifier = SessionVerifier(codec, store, cookie_name="portal_session")

        ignored = await verifier.verify(make_request({"token": codec.issue(user.id)}))
        used = await verifier.verify(make_request({"portal_session": codec.issue(user.id)}))

        assert ignored.reason is FailureReason.MISSING_TOKEN
        assert used.authenticated is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [
        "not-a-jwt",
        "a.b.c",
        token_factory.wrong_secret("user-123"),
        token_factory.without_subject(),
    ])
    async def test_malformed_tokens(self, verifier, token):
        result = await verifier.verify(make_request({"token": token}))

        assert result.authenticated is False
        assert result.reason is FailureReason.MALFORMED_TOKEN

    @pytest.mark.asyncio
    async def test_expired_token(self, verifier, store):
        user = await store.create_user("Ansh Vohra", "ansh@example.com", "hash")

        result = await verifier.verify(make_request({"token": token_factory.expired(user.id)}))

        assert result.authenticated is False
        assert result.reason is FailureReason.EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, verifier, codec, store):
        """A well-formed token whose user no longer exists is not a session."""
        user = await store.create_user("Ansh Vohra", "ansh@example.com", "hash")
        token = codec.issue(user.id)
        await store.delete_user(user.id)

        result = await verifier.verify(make_request({"token": token}))

        assert result.authenticated is False
        assert result.reason is FailureReason.UNKNOWN_USER

    @pytest.mark.asyncio
    async def test_store_error_fails_closed(self, verifier, codec, store):
        store.lookup_session = AsyncMock(side_effect=StoreUnavailableError("down"))

        result = await verifier.verify(make_request({"token": codec.issue("user-123")}))

        assert result.authenticated is False
        assert result.reason is FailureReason.STORE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unexpected_store_error_fails_closed(self, verifier, codec, store):
        store.lookup_session = AsyncMock(side_effect=RuntimeError("driver bug"))

        result = await verifier.verify(make_request({"token": codec.issue("user-123")}))

        assert result.reason is FailureReason.STORE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self, codec, store):
        """A lookup slower than the timeout is treated as unavailable."""
        user = await store.create_user("Ansh Vohra", "ansh@example.com", "hash")
        real_lookup = store.lookup_session

        async def slow_lookup(user_id):
            await asyncio.sleep(0.3)
            return await real_lookup(user_id)

        store.lookup_session = slow_lookup
        verifier = SessionVerifier(codec, store, lookup_timeout=0.05)

        result = await verifier.verify(make_request({"token": codec.issue(user.id)}))

        assert result.authenticated is False
        assert result.reason is FailureReason.STORE_UNAVAILABLE

        # let the abandoned lookup finish inside this loop
        await asyncio.sleep(0.35)

    @pytest.mark.asyncio
    async def test_lookup_duration_is_observed(self, codec, store):
        metrics = MetricsCollector("portal-test")
        verifier = SessionVerifier(codec, store, metrics=metrics)
        user = await store.create_user("Ansh Vohra", "ansh@example.com", "hash")

        await verifier.verify(make_request({"token": codec.issue(user.id)}))

        count = metrics.registry.get_sample_value("session_lookup_duration_seconds_count")
        assert count == 1.0

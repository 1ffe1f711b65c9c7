"""
Unit tests for registration and login.
"""

import pytest

from service_portal.app.adapters.credential_store import InMemoryCredentialStore
from service_portal.app.auth.accounts import AccountService
from service_portal.app.auth.tokens import SessionTokenCodec
from shared.errors import AuthenticationError, ValidationError
from shared.test_helpers import test_data_factory


class TestAccountService:
    """Test cases for AccountService."""

    @pytest.fixture
    def store(self):
        return InMemoryCredentialStore()

    @pytest.fixture
    def codec(self):
        return SessionTokenCodec("test-secret")

    @pytest.fixture
    def accounts(self, store, codec):
        return AccountService(store, codec)

    @pytest.fixture
    def sample_user(self):
        return test_data_factory.create_users()[0]

    @pytest.mark.asyncio
    async def test_register_hashes_password(self, accounts, sample_user):
        user = await accounts.register(sample_user.name, sample_user.email, sample_user.password)

        assert user.name == sample_user.name
        assert user.email == sample_user.email
        assert user.password_hash != sample_user.password
        assert accounts.pwd_context.verify(sample_user.password, user.password_hash)

    @pytest.mark.asyncio
    async def test_register_normalizes_email(self, accounts):
        user = await accounts.register("Ansh Vohra", "  Ansh@Example.COM ", "password123")

        assert user.email == "ansh@example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,email,password,field", [
        ("", "ansh@example.com", "password123", "name"),
        ("   ", "ansh@example.com", "password123", "name"),
        ("Ansh", "not-an-email", "password123", "email"),
        ("Ansh", "@example.com", "password123", "email"),
        ("Ansh", "ansh@example.com", "12345", "password"),
    ])
    async def test_register_validation(self, accounts, name, email, password, field):
        with pytest.raises(ValidationError) as exc_info:
            await accounts.register(name, email, password)

        assert exc_info.value.details["field"] == field

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, accounts, sample_user):
        await accounts.register(sample_user.name, sample_user.email, sample_user.password)

        with pytest.raises(ValidationError) as exc_info:
            await accounts.register("Someone Else", sample_user.email.upper(), "password456")

        assert exc_info.value.message == "Email already registered"

    @pytest.mark.asyncio
    async def test_login_issues_token_for_user(self, accounts, codec, sample_user):
        registered = await accounts.register(sample_user.name, sample_user.email, sample_user.password)

        user, token = await accounts.login(sample_user.email, sample_user.password)

        assert user.id == registered.id
        assert codec.decode(token).user_id == registered.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, accounts, sample_user):
        await accounts.register(sample_user.name, sample_user.email, sample_user.password)

        with pytest.raises(AuthenticationError) as exc_info:
            await accounts.login(sample_user.email, "wrong-password")

        assert exc_info.value.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, accounts):
        with pytest.raises(AuthenticationError) as exc_info:
            await accounts.login("nobody@example.com", "password123")

        assert exc_info.value.message == "Invalid email or password"

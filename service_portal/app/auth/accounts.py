"""
Registration and login for portal visitors.
"""

from typing import Tuple

from passlib.context import CryptContext

from shared.errors import AuthenticationError, ValidationError
from shared.logging import get_logger
from ..adapters.credential_store import CredentialStore, UserRecord
from .tokens import SessionTokenCodec

MIN_PASSWORD_LENGTH = 6


class AccountService:
    """Creates users and exchanges credentials for session tokens."""

    def __init__(self, store: CredentialStore, codec: SessionTokenCodec):
        self.store = store
        self.codec = codec
        self.logger = get_logger("portal.accounts")
        self.pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

    async def register(self, name: str, email: str, password: str) -> UserRecord:
        name = (name or "").strip()
        email = (email or "").strip()
        if not name:
            raise ValidationError("Name is required", details={"field": "name"})
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise ValidationError("A valid email is required", details={"field": "email"})
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                details={"field": "password"}
            )

        user = await self.store.create_user(name, email, self.pwd_context.hash(password))
        self.logger.info("User registered", user_id=user.id)
        return user

    async def login(self, email: str, password: str) -> Tuple[UserRecord, str]:
        """Check credentials and issue a session token for the user."""
        user = await self.store.get_user_by_email(email or "")
        if user is None:
            # Same hashing cost whether or not the account exists
            self.pwd_context.dummy_verify()
            raise AuthenticationError("Invalid email or password")

        if not self.pwd_context.verify(password or "", user.password_hash):
            self.logger.info("Login failed", user_id=user.id)
            raise AuthenticationError("Invalid email or password")

        self.logger.info("User logged in", user_id=user.id)
        return user, self.codec.issue(user.id)

"""
Signed session tokens carried in the portal's session cookie.
"""

import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from shared.errors import InvalidSessionToken


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    user_id: str
    issued_at: int
    expires_at: int
    session_id: str


class SessionTokenCodec:
    """Issues and verifies HS256 session tokens."""

    algorithm = "HS256"

    def __init__(self, secret: str, ttl_seconds: int = 3600, issuer: str = "venue-portal"):
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.issuer = issuer

    def issue(self, user_id: str, now: Optional[float] = None) -> str:
        """Create a token bound to ``user_id``."""
        issued_at = int(now if now is not None else time.time())
        claims = {
            "sub": user_id,
            "iss": self.issuer,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> SessionClaims:
        """Verify signature, issuer and expiry.

        Every failure surfaces as ``InvalidSessionToken``; callers never see
        the underlying decoder error.
        """
        try:
            claims: Dict[str, Any] = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require_sub": True, "require_exp": True, "require_iat": True},
            )
        except ExpiredSignatureError as exc:
            raise InvalidSessionToken("Session token expired", expired=True) from exc
        except (JWTError, ValueError, TypeError) as exc:
            raise InvalidSessionToken("Session token rejected") from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidSessionToken("Session token missing subject")

        return SessionClaims(
            user_id=subject,
            issued_at=int(claims["iat"]),
            expires_at=int(claims["exp"]),
            session_id=str(claims.get("jti", "")),
        )

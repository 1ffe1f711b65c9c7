"""
Authentication helpers for the portal service.
"""

from .accounts import AccountService
from .sessions import AuthenticatedIdentity, FailureReason, SessionVerifier, VerificationResult
from .tokens import SessionClaims, SessionTokenCodec

__all__ = [
    "AccountService",
    "AuthenticatedIdentity",
    "FailureReason",
    "SessionClaims",
    "SessionTokenCodec",
    "SessionVerifier",
    "VerificationResult",
]

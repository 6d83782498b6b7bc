"""
Ingestion Module

Request path: identity verification and stats submission.
"""
from .identity import (
    GoogleOAuthIdentityProvider,
    IdentityProvider,
    IdentityVerifier,
    TrustedHeaderIdentityProvider,
    UserInfo,
    compute_proof,
    create_identity_provider,
    parse_user_info,
    verify_proof,
)
from .submission import SubmissionProcessor

__all__ = [
    "GoogleOAuthIdentityProvider",
    "IdentityProvider",
    "IdentityVerifier",
    "TrustedHeaderIdentityProvider",
    "UserInfo",
    "compute_proof",
    "create_identity_provider",
    "parse_user_info",
    "verify_proof",
    "SubmissionProcessor",
]

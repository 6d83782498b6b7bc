"""
Identity Verification

A client submits stats under an anonymized integer user id and proves it acts
for a real account by sending

    hash = hex(sha256(utf8(real_identity + str(user_id))))

The server recomputes the digest from the identity the identity provider
reports for the caller. The mapping between real and anonymized ids is never
stored, and neither the identity nor the expected digest is ever logged.
"""

import hashlib
import hmac
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from starlette.datastructures import QueryParams
from starlette.requests import Request

from statshub.config import AuthSettings
from statshub.errors import ClientInputError, ForbiddenError, NotAuthenticatedError
from statshub.metrics import AUTH_FAILURES
from statshub.stats.models import INT64_MAX, INT64_MIN

logger = structlog.get_logger(__name__)

GOOGLE_IAP_PREFIX = "accounts.google.com:"
USER_ID_PATTERN = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class UserInfo:
    """The anonymized user id and auth proof of a request"""

    user_id: int
    proof: str


def parse_user_info(raw_user_id: str, query_params: QueryParams) -> UserInfo:
    """
    Extract the user id (path segment) and proof (``hash`` query parameter).

    Raises:
        ClientInputError: bad id, missing or repeated hash
    """
    if not USER_ID_PATTERN.fullmatch(raw_user_id):
        raise ClientInputError(f"Unable to convert userId {raw_user_id} to int")
    user_id = int(raw_user_id)
    if user_id < INT64_MIN or user_id > INT64_MAX:
        raise ClientInputError(f"userId {raw_user_id} out of range")

    hashes = query_params.getlist("hash")
    if not hashes:
        raise ClientInputError("No hash provided in querystring")
    if len(hashes) != 1:
        raise ClientInputError("Wrong number of hashes provided in querystring")

    return UserInfo(user_id=user_id, proof=hashes[0])


def compute_proof(real_identity: str, user_id: int) -> str:
    """Lowercase hex sha256 of the real identity followed by the user id"""
    return hashlib.sha256(f"{real_identity}{user_id}".encode("utf-8")).hexdigest()


def verify_proof(user_id: int, proof: str, real_identity: str) -> None:
    """
    Check a proof against the caller's real identity.

    Hex comparison is case-insensitive and constant time.

    Raises:
        ForbiddenError: on mismatch
    """
    expected = compute_proof(real_identity, user_id)
    if not hmac.compare_digest(expected.encode("ascii"), proof.lower().encode("utf-8")):
        raise ForbiddenError("Hash mismatch, authentication failure")


class IdentityProvider(ABC):
    """Supplies the real identity of the authenticated caller"""

    @abstractmethod
    async def current_identity(self, request: Request) -> str:
        """
        Returns:
            The caller's real identity

        Raises:
            NotAuthenticatedError: if the caller is not authenticated
        """


class GoogleOAuthIdentityProvider(IdentityProvider):
    """Resolves an OAuth bearer token to the account email"""

    def __init__(
        self,
        userinfo_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._userinfo_url = userinfo_url
        self._timeout = timeout
        self._transport = transport

    async def current_identity(self, request: Request) -> str:
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise NotAuthenticatedError("Not authenticated: missing bearer token")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    self._userinfo_url,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable", error=type(e).__name__)
            raise NotAuthenticatedError("Not authenticated: identity provider unavailable") from e

        if response.status_code != 200:
            raise NotAuthenticatedError(f"Not authenticated: token rejected ({response.status_code})")

        try:
            payload = response.json()
        except ValueError:
            payload = None
        email = payload.get("email") if isinstance(payload, dict) else None
        if not isinstance(email, str) or not email:
            raise NotAuthenticatedError("Not authenticated: no email for token")
        return email


class TrustedHeaderIdentityProvider(IdentityProvider):
    """
    Reads the identity from a header set by an authenticating proxy.

    Only safe behind a proxy that strips the header from client requests.
    """

    def __init__(self, header_name: str):
        self._header_name = header_name

    async def current_identity(self, request: Request) -> str:
        value = request.headers.get(self._header_name, "").strip()
        if value.startswith(GOOGLE_IAP_PREFIX):
            value = value[len(GOOGLE_IAP_PREFIX):]
        if not value:
            raise NotAuthenticatedError("Not authenticated")
        return value


def create_identity_provider(settings: AuthSettings) -> IdentityProvider:
    """Build the configured identity provider"""
    if settings.provider == "header":
        return TrustedHeaderIdentityProvider(settings.header_name)
    return GoogleOAuthIdentityProvider(settings.userinfo_url, timeout=settings.timeout)


class IdentityVerifier:
    """Binds an anonymized user id to the authenticated caller"""

    def __init__(self, provider: IdentityProvider):
        self.provider = provider

    async def verify(self, request: Request, user_info: UserInfo) -> None:
        """
        Raises:
            NotAuthenticatedError: caller not authenticated
            ForbiddenError: proof does not match the caller
        """
        try:
            real_identity = await self.provider.current_identity(request)
        except NotAuthenticatedError:
            AUTH_FAILURES.labels(reason="unauthenticated").inc()
            logger.info("Unauthenticated stats request", user_id=user_info.user_id)
            raise

        try:
            verify_proof(user_info.user_id, user_info.proof, real_identity)
        except ForbiddenError:
            AUTH_FAILURES.labels(reason="forbidden").inc()
            logger.info("Stats request with mismatched hash", user_id=user_info.user_id)
            raise

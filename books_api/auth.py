"""
Bearer token authentication for the FastAPI API.
"""

from typing import List, Optional

import jwt
import structlog
from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import ValidationError

from books_api.models import Identity

logger = structlog.get_logger(__name__)

# Missing and invalid credentials look the same on the wire.
NOT_AUTHENTICATED = "Not authenticated"


class AuthenticationError(Exception):
    """Base class for rejected credentials."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MissingCredentialError(AuthenticationError):
    """No usable ``Authorization: Bearer <token>`` header."""


class InvalidCredentialError(AuthenticationError):
    """A token was supplied but failed verification."""


class AuthGate:
    """
    Verifies HMAC-signed bearer tokens against a shared secret.

    The gate holds no per-request state: each call to ``authenticate``
    performs a single verification and returns a new ``Identity``.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", leeway: int = 0):
        """
        Args:
            secret: Shared HMAC secret tokens are signed with
            algorithm: HMAC algorithm (HS256, HS384 or HS512)
            leeway: Seconds of clock skew tolerated on ``exp``
        """
        if not secret:
            raise ValueError("Access token secret must not be empty")
        self._secret = secret
        self.algorithms: List[str] = [algorithm]
        self.leeway = leeway

    @staticmethod
    def extract_token(authorization: Optional[str]) -> str:
        """
        Pull the token out of an ``Authorization`` header value.

        Raises:
            MissingCredentialError: If the header is absent or not ``Bearer <token>``
        """
        raw = (authorization or "").strip()
        if not raw:
            raise MissingCredentialError("missing_header")

        parts = raw.split(None, 1)
        if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
            raise MissingCredentialError("malformed_header")
        return parts[1].strip()

    def verify(self, token: str) -> Identity:
        """
        Verify a token and decode its claims.

        Raises:
            InvalidCredentialError: On bad signature, expiry or malformed claims
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self.algorithms,
                leeway=self.leeway,
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidCredentialError("expired") from e
        except jwt.InvalidSignatureError as e:
            raise InvalidCredentialError("bad_signature") from e
        except jwt.MissingRequiredClaimError as e:
            raise InvalidCredentialError("missing_claims") from e
        except jwt.InvalidTokenError as e:
            raise InvalidCredentialError("malformed_token") from e

        try:
            return Identity(**claims)
        except (ValidationError, TypeError) as e:
            raise InvalidCredentialError("missing_claims") from e

    def authenticate(self, authorization: Optional[str]) -> Identity:
        """Extract and verify the bearer token of one request."""
        return self.verify(self.extract_token(authorization))


def get_auth_gate(request: Request) -> AuthGate:
    """Get the auth gate the application was built with."""
    return request.app.state.auth_gate


async def require_identity(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    gate: AuthGate = Depends(get_auth_gate),
) -> Identity:
    """
    Authenticate the request and hand the caller's identity to the route.

    Raises:
        HTTPException: 403 if the credential is missing or invalid
    """
    try:
        identity = gate.authenticate(authorization)
    except MissingCredentialError as e:
        logger.warning("auth.missing_credential", reason=e.reason, path=request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_AUTHENTICATED)
    except InvalidCredentialError as e:
        logger.warning("auth.invalid_credential", reason=e.reason, path=request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_AUTHENTICATED)

    logger.debug("auth.authenticated", username=identity.username, path=request.url.path)
    return identity


async def authorize_write(request: Request) -> Optional[Identity]:
    """
    Gate write routes when ``require_auth_for_writes`` is enabled.

    Returns the identity when the gate ran, None when writes are public.
    """
    if not request.app.state.config.require_auth_for_writes:
        return None
    gate = get_auth_gate(request)
    return await require_identity(request, request.headers.get("authorization"), gate)

"""Caller authentication from bearer tokens."""

from dataclasses import dataclass
from typing import Any

import jwt

from ..config import get_auth_jwt_secret, is_development
from ..errors import AuthenticationError, ConfigurationError
from ..logging_config import get_logger, log_security_event, log_user_action

logger = get_logger(__name__)

TOKEN_ALGORITHMS = ["HS256"]


@dataclass
class UserInfo:
    """Authenticated caller."""

    user_id: str
    email: str | None = None
    role: str | None = None


def extract_bearer_token(authorization: str | None) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationError: If the header is missing or not a bearer token
    """
    if not authorization:
        raise AuthenticationError("No authorization header", code="missing_authorization")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be a bearer token", code="invalid_authorization")
    return token.strip()


class TokenAuthService:
    """
    Resolves bearer tokens to users.

    Tokens are HS256 JWTs signed with AUTH_JWT_SECRET; the ``sub`` claim is
    the owner id. Without a secret, development environments accept unsigned
    decoding so that local tools can run; other environments refuse.
    """

    def __init__(self, jwt_secret: str | None = None, development_mode: bool | None = None) -> None:
        self.jwt_secret = jwt_secret if jwt_secret is not None else get_auth_jwt_secret()
        self._development_mode = is_development() if development_mode is None else development_mode

        if not self.jwt_secret and self._development_mode:
            logger.warning("token_signature_verification_disabled", reason="AUTH_JWT_SECRET not set")

    def _decode(self, token: str) -> dict[str, Any]:
        if self.jwt_secret:
            return jwt.decode(
                token,
                self.jwt_secret,
                algorithms=TOKEN_ALGORITHMS,
                options={"verify_aud": False},
            )

        if self._development_mode:
            return jwt.decode(token, options={"verify_signature": False})

        raise ConfigurationError(
            "Token verification is not configured. Please set AUTH_JWT_SECRET.", missing=["AUTH_JWT_SECRET"]
        )

    def verify_token(self, token: str) -> UserInfo:
        """
        Validate a token and return its user.

        Raises:
            AuthenticationError: If the token is invalid, expired or has no subject
            ConfigurationError: If no secret is configured outside development
        """
        try:
            payload = self._decode(token)
        except jwt.PyJWTError as e:
            log_security_event("token_rejected", error=str(e))
            raise AuthenticationError("Unauthorized", code="invalid_token", original_exception=e) from e

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Unauthorized", code="missing_subject")

        user = UserInfo(user_id=str(user_id), email=payload.get("email"), role=payload.get("role"))
        log_user_action(user.user_id, "authenticated")
        return user

    def authenticate(self, authorization: str | None) -> tuple[UserInfo, str]:
        """
        Authenticate an ``Authorization`` header value.

        Returns:
            tuple: (user, raw token); the token is kept for propagation to the tagger
        """
        token = extract_bearer_token(authorization)
        return self.verify_token(token), token


# Global auth service instance
_auth_service: TokenAuthService | None = None


def get_auth_service() -> TokenAuthService:
    """Get the global authentication service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = TokenAuthService()
    return _auth_service

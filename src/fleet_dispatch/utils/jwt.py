"""JWT manager for operator tokens — configured once at startup."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, ClassVar

from jose import JWTError, jwt

from fleet_dispatch.utils.time import Time


class JWTManager:
    """Operator token creation and verification.

    Call ``configure()`` once at startup, then use class methods directly.
    The ``sub`` claim carries the operator name recorded in command
    metadata (``queued_by``, ``cancelled_by``, ``retried_by``).
    """

    _secret_key: ClassVar[str] = ""
    _algorithm: ClassVar[str] = "HS256"
    _expire_minutes: ClassVar[int] = 60

    @classmethod
    def configure(
        cls,
        *,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60,
    ) -> None:
        """Set signing config. Call once at startup."""
        cls._secret_key = secret_key
        cls._algorithm = algorithm
        cls._expire_minutes = expire_minutes

    @classmethod
    def create_token(cls, claims: dict[str, Any]) -> str:
        """Create a signed JWT token.

        Args:
            claims: Claims to encode (must include ``sub``).

        Returns:
            Encoded JWT string.
        """
        to_encode = claims.copy()
        to_encode["exp"] = Time.now() + timedelta(minutes=cls._expire_minutes)
        return jwt.encode(to_encode, cls._secret_key, algorithm=cls._algorithm)

    @classmethod
    def create_operator_token(cls, operator: str) -> str:
        """Create a token identifying ``operator``."""
        return cls.create_token({"sub": operator, "role": "operator"})

    @classmethod
    def decode_token(cls, token: str) -> dict[str, Any]:
        """Decode and verify a JWT token.

        Raises:
            ValueError: If the token is invalid or expired.
        """
        try:
            payload: dict[str, Any] = jwt.decode(
                token, cls._secret_key, algorithms=[cls._algorithm],
            )
        except JWTError as error:
            raise ValueError(f"Invalid token: {error}") from error
        return payload

    @classmethod
    def resolve_operator(cls, token: str) -> str:
        """Decode an operator token and return the operator name.

        Raises:
            ValueError: If the token is invalid, expired, or is not an
                operator token.
        """
        payload = cls.decode_token(token)
        operator = payload.get("sub")
        if not operator:
            raise ValueError("Invalid token payload: missing sub claim")
        if payload.get("role") != "operator":
            raise ValueError("Token is not an operator token")
        return str(operator)

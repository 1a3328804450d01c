from dataclasses import dataclass

from jose import jwt, JWTError
from fastapi import HTTPException

from parkmitra.core.config import JWT_SECRET, JWT_ALGORITHM


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str


def decode_token(token: str, secret: str | None = None, algorithm: str | None = None) -> Principal:
    """Resolve the caller from a token issued by the auth service."""
    try:
        payload = jwt.decode(
            token,
            secret or JWT_SECRET,
            algorithms=[algorithm or JWT_ALGORITHM]
        )

        if "sub" not in payload or "role" not in payload:
            raise HTTPException(status_code=401, detail="Invalid token payload")

        return Principal(user_id=int(payload["sub"]), role=payload["role"])

    except (JWTError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

from datetime import datetime, timedelta
from jose import jwt
from config.env import JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_DAYS

# Tokens are issued by the auth service; this side verifies them.
# issue_service_token covers internal callers and tests.


def _require_jwt_secret() -> str:
    secret = (JWT_SECRET or "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return secret


def issue_service_token(user_id: str, role: str, days: int = ACCESS_TOKEN_DAYS) -> str:
    now = datetime.utcnow()
    claims = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(claims, _require_jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Raises jose.JWTError on a bad signature, expiry or missing claims."""
    return jwt.decode(
        token,
        _require_jwt_secret(),
        algorithms=[JWT_ALGORITHM],
        options={"require_sub": True, "require_exp": True},
    )

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from jose import JWTError, jwt

from wooffy_api.core.config import settings

ALGORITHM = "HS256"


class TokenValidationError(ValueError):
    pass


def create_access_token(user_id: str, *, expires_delta: timedelta = timedelta(hours=1)) -> str:
    """Mint a token shaped like the identity provider's session tokens (used by tests and tooling)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": "authenticated",
        "session_id": str(uuid4()),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as exc:
        raise TokenValidationError("Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise TokenValidationError("Invalid token subject")

    return payload


def generate_email_verification_token() -> str:
    return secrets.token_urlsafe(48)


def hash_email_verification_token(raw_token: str) -> str:
    token_material = f"{settings.jwt_secret}:{(raw_token or '').strip()}"
    return hashlib.sha256(token_material.encode("utf-8")).hexdigest()


def secrets_match(provided: str | None, expected: str | None) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))

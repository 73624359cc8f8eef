"""
Session token handling

Tokens are issued by the external identity provider and signed with the
shared secret; ``create_access_token`` exists for scripts and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import hmac
import logging
from app.config import settings
from app.schemas import TokenPayload

logger = logging.getLogger(__name__)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed session token"""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=1))

    to_encode.update({"exp": expire, "iat": now})
    if settings.token_issuer:
        to_encode.setdefault("iss", settings.token_issuer)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify and decode a session token; None when it is invalid or expired"""
    try:
        options = {"verify_iss": bool(settings.token_issuer)}
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            issuer=settings.token_issuer,
            options=options
        )
    except JWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email or payload.get("exp") is None:
        return None

    return TokenPayload(
        sub=user_id,
        email=email,
        name=payload.get("name"),
        registration_source=payload.get("registration_source"),
        exp=payload["exp"],
        iat=payload.get("iat", 0)
    )


def verify_api_key(authorization: Optional[str]) -> bool:
    """Check an ``Authorization: Bearer <key>`` header against the ingestion key"""
    if not authorization or not authorization.startswith("Bearer "):
        return False
    supplied = authorization[len("Bearer "):].strip()
    return hmac.compare_digest(supplied.encode(), settings.analytics_api_key.encode())

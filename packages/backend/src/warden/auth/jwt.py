"""JWT session token creation and verification.

A token binds a user to one app:
- uid, email: who logged in
- app_id: which relying party it was issued for
- iat / exp: issue time and issue time + ttl

It is signed (HS256) with the app's own secret, never a process-wide
one. Nothing is stored server-side; there is no revocation.
"""

from datetime import datetime, timedelta, timezone

import jwt

from warden.domain.models import App, User
from warden.errors import IssuanceError

ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when token verification fails."""


def issue_token(user: User, app: App, ttl: timedelta) -> str:
    """Create a signed session token for `user` scoped to `app`.

    Raises IssuanceError when the app has no secret — never emits an
    unsigned token.
    """
    if not app.secret:
        raise IssuanceError(f"app {app.id} has no signing secret")

    now = datetime.now(timezone.utc)
    payload = {
        "uid": user.id,
        "email": user.email,
        "app_id": app.id,
        "iat": now,
        "exp": now + ttl,
    }
    try:
        return jwt.encode(payload, app.secret, algorithm=ALGORITHM)
    except jwt.PyJWTError as e:
        raise IssuanceError(f"failed to sign token: {type(e).__name__}") from e


def verify_token(token: str, app: App) -> dict:
    """Verify and decode a token presented to `app`.

    Returns the payload dict on success.
    Raises TokenError on failure, including a valid token of another app.
    """
    if not app.secret:
        raise TokenError("App has no signing secret")
    try:
        payload = jwt.decode(
            token,
            app.secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "iat", "uid", "app_id"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload["app_id"] != app.id:
        raise TokenError("Token was issued for another app")
    return payload

# services/auth.py
from services.errors import AuthError

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):]
    return token or None


# =========================================================
# AUTH GUARD (first stage, nothing runs before it)
# =========================================================
def require_bearer_token(authorization: str | None) -> str:
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthError("Missing or malformed Authorization header")
    return token

"""Authentication middleware and decorators

Sessions are issued by Clerk. The frontend sends the session JWT either as
``Authorization: Bearer <token>`` or in the ``__session`` cookie. Tokens are
verified against Clerk's JWKS and the ``sub`` claim is the Clerk user id.
"""

import hmac
from functools import wraps
from typing import Any, Dict, Optional

import requests
from flask import g, request
from jose import JWTError, jwt

import config
from core import AuthenticationError, ExternalServiceError, get_logger

logger = get_logger(__name__)

jwks_cache: Optional[Dict[str, Any]] = None


def get_jwks(refresh: bool = False) -> Dict[str, Any]:
    global jwks_cache
    if jwks_cache is None or refresh:
        headers = {}
        if config.CLERK_SECRET_KEY:
            headers["Authorization"] = f"Bearer {config.CLERK_SECRET_KEY}"
        resp = requests.get(config.CLERK_JWKS_URL, headers=headers, timeout=10)
        resp.raise_for_status()
        jwks_cache = resp.json()
    return jwks_cache


def _find_key(kid: str) -> Optional[Dict[str, Any]]:
    keys = get_jwks().get("keys", [])
    key = next((k for k in keys if k.get("kid") == kid), None)
    if key is None:
        # Signing keys rotate; refetch once before giving up
        keys = get_jwks(refresh=True).get("keys", [])
        key = next((k for k in keys if k.get("kid") == kid), None)
    return key


def verify_session_token(token: str) -> Optional[str]:
    """Return the Clerk user id for a valid session token, else None."""
    try:
        headers = jwt.get_unverified_headers(token)
        kid = headers.get("kid")
        if not kid:
            return None
        key = _find_key(kid)
        if not key:
            return None
        options = {"verify_aud": False}
        if config.CLERK_ISSUER:
            claims = jwt.decode(
                token, key, algorithms=["RS256"], issuer=config.CLERK_ISSUER, options=options
            )
        else:
            claims = jwt.decode(token, key, algorithms=["RS256"], options=options)
    except (JWTError, requests.RequestException) as e:
        logger.warning("session_token_rejected", error=str(e))
        return None
    return claims.get("sub")


def get_session_token() -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get("__session")


def get_current_user_id() -> Optional[str]:
    token = get_session_token()
    if not token:
        return None
    return verify_session_token(token)


def require_login(f):
    """Decorator to require an authenticated Clerk session"""

    @wraps(f)
    def wrapper(*args, **kwargs):
        user_id = get_current_user_id()
        if not user_id:
            raise AuthenticationError("Unauthorized")
        g.clerk_user_id = user_id
        return f(*args, **kwargs)

    return wrapper


def require_cron(f):
    """Decorator guarding cron endpoints with the shared CRON_SECRET.

    Only enforced in production so the endpoint can be triggered locally.
    """

    @wraps(f)
    def wrapper(*args, **kwargs):
        if config.is_production():
            expected = f"Bearer {config.CRON_SECRET}"
            provided = request.headers.get("Authorization", "")
            if not config.CRON_SECRET or not hmac.compare_digest(provided, expected):
                raise AuthenticationError("Unauthorized")
        return f(*args, **kwargs)

    return wrapper


def fetch_clerk_user(clerk_user_id: str) -> Dict[str, Any]:
    """Read a user record from Clerk's Backend API."""
    try:
        resp = requests.get(
            f"{config.CLERK_API_URL}/users/{clerk_user_id}",
            headers={"Authorization": f"Bearer {config.CLERK_SECRET_KEY}"},
            timeout=10,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error("clerk_user_fetch_failed", exc=e, clerk_user_id=clerk_user_id)
        raise ExternalServiceError("Identity provider", str(e))
    return resp.json()

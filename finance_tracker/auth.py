from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple
import logging
import re

import bcrypt
from fastapi import HTTPException, Request, status
from fastapi.routing import APIRoute
from jose import JWTError, jwt

from .core import config

logger = logging.getLogger("finance_tracker.auth")


# --------- Public routes ---------

def public(func: Callable) -> Callable:
    setattr(func, "_is_public", True)
    return func


def is_endpoint_public(endpoint: Any) -> bool:
    return bool(getattr(endpoint, "_is_public", False))


def build_public_route_matchers(*sources: Any) -> List[Tuple["re.Pattern[str]", Set[str]]]:
    """Collect regex + methods for routes decorated with @public.

    `sources` are the app and the APIRouters it includes. A router keeps its
    own APIRoute entries with the prefixed path, while newer FastAPI releases
    no longer flatten included routers into `app.routes`.

    Returns list of tuples: (compiled_regex, set_of_methods)
    """
    matchers: List[Tuple["re.Pattern[str]", Set[str]]] = []
    seen: Set[Tuple[str, FrozenSet[str]]] = set()
    for source in sources:
        for r in getattr(source, "routes", []) or []:
            if not (isinstance(r, APIRoute) and is_endpoint_public(r.endpoint)):
                continue
            methods = set(m.upper() for m in (r.methods or {"GET"}))
            key = (r.path_regex.pattern, frozenset(methods))
            if key in seen:
                continue
            seen.add(key)
            matchers.append((r.path_regex, methods))
    logger.debug("Public routes: %s", [m[0].pattern for m in matchers])
    return matchers


# --------- Passwords ---------

def _secret(password: str) -> bytes:
    # bcrypt only uses the first 72 bytes; newer releases reject longer input
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_secret(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_secret(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


# --------- Tokens ---------

def create_access_token(user_id: int, email: str, expires_minutes: Optional[int] = None) -> str:
    minutes = config.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": str(user_id), "email": email, "exp": expire}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return {"id", "email"} for a valid token, None otherwise."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    if sub is None or not str(sub).isdigit():
        return None
    return {"id": int(sub), "email": payload.get("email")}


def get_current_user(request: Request) -> Dict[str, Any]:
    """FastAPI dependency: the user the AuthMiddleware attached to the request."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user

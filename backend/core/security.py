"""
ChaosMart Security Utilities

JWT issuing and validation for team and staff API keys.

Team tokens carry the team id and the scopes its platform mode allows;
staff tokens carry ``admin:all``, which implies every other scope.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

ADMIN_SCOPE = "admin:all"
TEAM_BASE_SCOPES = ("read:inventory", "read:events", "write:chat")
DEVELOPMENT_ONLY_SCOPES = ("write:events",)
ALL_SCOPES = TEAM_BASE_SCOPES + DEVELOPMENT_ONLY_SCOPES + ("write:inventory", ADMIN_SCOPE)


def scopes_for_mode(mode: str) -> list[str]:
    """Scopes granted to a team token issued while the platform is in ``mode``."""
    scopes = list(TEAM_BASE_SCOPES)
    if mode == "development":
        scopes.extend(DEVELOPMENT_ONLY_SCOPES)
    return scopes


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.token_expiry_days))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_team_token(team_id: str, mode: str) -> str:
    return create_access_token({"teamId": team_id, "scopes": scopes_for_mode(mode)})


def create_admin_token() -> str:
    return create_access_token({"teamId": None, "scopes": [ADMIN_SCOPE]})


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a token. Returns None if it is invalid or expired."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    scopes = payload.get("scopes")
    if not isinstance(scopes, list):
        return None
    return {"teamId": payload.get("teamId") or None, "scopes": scopes, "exp": payload.get("exp")}


def has_scope(scopes: list[str], required: str) -> bool:
    return ADMIN_SCOPE in scopes or required in scopes

"""
ChaosMart API Dependencies

Dependency injection for DB sessions, caller identity, scopes and the
platform-mode write gate.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.security import ADMIN_SCOPE, decode_access_token, has_scope
from db.session import AsyncSessionLocal

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Resolved caller: a team (team_id set) or staff (team_id None, admin scope)."""

    team_id: str | None
    scopes: tuple[str, ...]

    @property
    def is_admin(self) -> bool:
        return ADMIN_SCOPE in self.scopes


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    """Decode the bearer token into a Principal."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return Principal(team_id=payload["teamId"], scopes=tuple(payload["scopes"]))


def require_scope(scope: str):
    """Dependency factory: caller must hold ``scope`` (admin holds every scope)."""

    async def _check(principal: Principal = Depends(get_principal)) -> Principal:
        if not has_scope(list(principal.scopes), scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required scope: {scope}",
            )
        return principal

    return _check


async def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


def require_team(principal: Principal) -> str:
    if not principal.team_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No team context")
    return principal.team_id


async def require_development_mode(db: AsyncSession = Depends(get_db)) -> str:
    """Block write operations while the platform is in judging mode."""
    from teams.service import get_platform_mode

    mode = await get_platform_mode(db)
    if mode == "judging":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not allowed in judging mode",
        )
    return mode

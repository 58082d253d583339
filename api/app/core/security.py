from fastapi import Depends, Header, HTTPException, status

from app.core.auth import Principal, scopes_for
from app.services.repository import RepositoryUnavailableError, get_repository


async def get_identity(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    """Return the uid asserted by the authenticating gateway."""
    uid = (x_user_id or "").strip()
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")
    return uid


async def get_current_principal(
    uid: str = Depends(get_identity),
    repository=Depends(get_repository),
) -> Principal:
    try:
        user = await repository.get_user(uid)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown user; sign in first")

    return Principal(
        subject=user["uid"],
        scopes=scopes_for(user["role"], user["status"]),
        role=user["role"],
        status=user["status"],
        email=user["email"],
    )


async def get_admin_principal(principal: Principal = Depends(get_current_principal)) -> Principal:
    try:
        principal.require_scopes({"admin:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return principal

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import Principal
from app.core.config import Settings, get_settings
from app.core.security import get_current_principal, get_identity
from app.schemas.users import ProfileUpdateRequest, SignInRequest, UserOut
from app.services.repository import RepositoryNotFoundError, RepositoryUnavailableError, get_repository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sign-in", response_model=UserOut)
async def sign_in(
    payload: SignInRequest,
    uid: str = Depends(get_identity),
    repository=Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> UserOut:
    is_admin = payload.email.strip().lower() == settings.admin_login_email.strip().lower()
    try:
        row = await repository.create_user_profile(
            uid=uid,
            email=payload.email,
            display_name=payload.display_name,
            photo_url=payload.photo_url,
            is_admin=is_admin,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.info("user signed in uid=%s role=%s status=%s", uid, row["role"], row["status"])
    return UserOut(**row)


@router.get("/me", response_model=UserOut)
async def get_me(
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
) -> UserOut:
    try:
        row = await repository.get_user(principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
    return UserOut(**row)


@router.put("/me/profile", response_model=UserOut)
async def update_profile(
    payload: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    repository=Depends(get_repository),
) -> UserOut:
    try:
        principal.require_scopes({"profile:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await repository.complete_user_profile(uid=principal.subject, fields=payload.model_dump())
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return UserOut(**row)

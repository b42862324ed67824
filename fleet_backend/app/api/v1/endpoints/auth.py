"""
Authentication API endpoints.

Provides login, logout and user info endpoints for the mobile app and the
admin panel. Accounts are provisioned by administrators, not self-registered.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.user import User
from fleet_backend.app.schemas.auth import UserLogin, TokenResponse, UserResponse
from fleet_backend.app.core.security import verify_password
from fleet_backend.app.core.jwt import create_access_token
from fleet_backend.app.core.dependencies import get_current_user
from fleet_backend.app.core.redis_client import get_redis
from fleet_backend.app.core.token_revocation import revoke_token
from fleet_backend.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Accepts username or email for login.
    Logs successful and failed login attempts.
    """
    result = await db.execute(
        select(User).where(
            or_(User.username == credentials.username, User.email == credentials.username)
        )
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        await log_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            actor_id=user.id if user else None,
            actor_username=credentials.username,
            company_id=user.company_id if user else None,
            metadata={"reason": "Invalid password" if user else "User not found"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        await log_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            actor_id=user.id,
            actor_username=user.username,
            company_id=user.company_id,
            metadata={"reason": "Account is inactive"}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    access_token = create_access_token(data={
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
        "company_id": user.company_id
    })

    response = TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=user.id,
        username=user.username,
        role=user.role,
        company_id=user.company_id
    )

    await log_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        actor_id=user.id,
        actor_username=user.username,
        company_id=user.company_id
    )

    return response


@router.post("/logout")
async def logout(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """Revoke the bearer token used for this request."""
    revoked = await revoke_token(redis, current_user["token"], current_user["user_id"])

    await log_event(
        db=db,
        action=AuditAction.LOGOUT,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        company_id=current_user["company_id"]
    )

    return {"logged_out": True, "token_revoked": revoked}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get current authenticated user information."""
    result = await db.execute(select(User).where(User.id == current_user["user_id"]))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)

"""Authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bailey.api.routes import limiter, INVALID_CREDENTIALS_RESPONSE
from bailey.database.db import get_db_session
from bailey.services import auth_service, user_service
from bailey.api.auth_dependencies import get_current_user
from bailey.models.schemas import SignupRequest, LoginRequest, AuthResponse, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()

MIN_PASSWORD_LENGTH = 8


@router.post("/api/auth/signup", response_model=AuthResponse)
@limiter.limit("10/minute")
async def signup(request: Request, payload: SignupRequest, session: AsyncSession = Depends(get_db_session)):
    """Create an account and return an access token."""
    try:
        email = auth_service.normalize_email(payload.email)
        if len(payload.password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            )
        if await user_service.get_user_by_email(session, email):
            raise HTTPException(status_code=400, detail="Email is already registered")

        password_hash = auth_service.hash_password(payload.password)
        user_id = await user_service.create_user(session, email, password_hash)
        access_token = auth_service.create_access_token(data={"user_id": user_id, "email": email})
        logger.info(f"New user {user_id} signed up")

        return AuthResponse(access_token=access_token, token_type="bearer", user_id=user_id, email=email)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error during signup: {str(e)}")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    """Login with email and password."""
    try:
        email = auth_service.normalize_email(payload.email)
        user = await user_service.get_user_by_email(session, email)
        if not user:
            raise INVALID_CREDENTIALS_RESPONSE
        if not auth_service.verify_password(payload.password, user["password_hash"]):
            raise INVALID_CREDENTIALS_RESPONSE

        access_token = auth_service.create_access_token(data={"user_id": user["id"], "email": email})
        return AuthResponse(access_token=access_token, token_type="bearer", user_id=user["id"], email=email)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error during login: {str(e)}")


@router.get("/api/auth/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get the authenticated user."""
    return UserResponse(
        id=current_user["id"],
        email=current_user["email"],
        created_at=current_user.get("created_at"),
    )

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from app.api.deps import get_current_user, get_db
from app.core.config import settings
from app.core.redis import login_rate_limiter
from app.core.responses import success_response, unwrap
from app.core.security import create_access_token
from app.models.user import User
from app.schemas.user import SignupRequest, Token, UserResponse
from app.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_body(user: User) -> dict:
    token = Token(access_token=create_access_token({"sub": str(user.id), "org": user.organization_id, "role": user.role}))
    body = token.model_dump()
    return success_response(body, **body)


@router.post("/login")
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Exchange email and password for a bearer token."""
    identifier = form_data.username.strip().lower()

    if settings.RATE_LIMIT_ENABLED:
        limited, retry_after = await login_rate_limiter.hit(
            identifier, settings.LOGIN_MAX_ATTEMPTS, settings.LOGIN_WINDOW_SECONDS
        )
        if limited:
            logger.warning(f"Login rate limit hit for {identifier}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many login attempts. Try again later.",
                headers={"Retry-After": str(retry_after)}
            )

    user = user_service.authenticate(db, identifier, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    if settings.RATE_LIMIT_ENABLED:
        await login_rate_limiter.reset(identifier)

    logger.info(f"User {user.id} logged in")
    return _token_body(user)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    signup_data: SignupRequest,
    db: Session = Depends(get_db)
):
    """Create an account and return a token for it."""
    user = unwrap(user_service.signup(db, signup_data.model_dump()), "user")
    body = _token_body(user)
    body["data"]["user"] = UserResponse.model_validate(user)
    return body


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return success_response(UserResponse.model_validate(current_user))

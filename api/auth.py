from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from api.models import UserCreate, UserResponse, TokenResponse
from api.dependencies import get_user_service
from api.services.user_service import UserService, UserServiceException
from api.session import SESSION_COOKIE
from slowapi import Limiter
from slowapi.util import get_remote_address
import os

router = APIRouter()
limiter = Limiter(
    key_func=get_remote_address,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
)


@router.post("/signup", response_model=UserResponse)
@limiter.limit("5/hour")  # Strict limit for signup
def signup(
    request: Request,
    payload: UserCreate,
    user_service: UserService = Depends(get_user_service),
):
    try:
        user = user_service.signup(
            payload.email, payload.password, payload.full_name, payload.confirm_password
        )
        return UserResponse.from_user(user)
    except UserServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")  # Prevent brute force
def login(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    user_service: UserService = Depends(get_user_service),
):
    try:
        token = user_service.login(form_data.username, form_data.password)
    except UserServiceException as e:
        raise HTTPException(status_code=400, detail=str(e))
    response.set_cookie(
        key=SESSION_COOKIE,
        value=f"Bearer {token['access_token']}",
        httponly=True,
        samesite="lax",
        max_age=user_service.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return TokenResponse(access_token=token["access_token"], token_type=token["token_type"])


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE)
    return {"status": "signed_out"}

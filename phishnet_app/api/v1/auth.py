from fastapi import APIRouter, Depends, Request, status

from phishnet_app.dependencies import AuthContext, get_auth_context, get_auth_service
from phishnet_app.schemas.auth import AuthData, LoginRequest, ProfileData, RegisterRequest, TokenData, UserProfile
from phishnet_app.schemas.common import APIResponse
from phishnet_app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=APIResponse[AuthData], status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Create an account and sign it in"""
    user, token = await auth_service.register(data)
    return APIResponse(
        message="User registered successfully",
        data=AuthData(user=UserProfile.model_validate(user), token=token),
    )


@router.post("/login", response_model=APIResponse[AuthData])
def login(
    data: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service)
):
    client_ip = request.client.host if request.client else None
    user, token = auth_service.login(data, client_ip)
    return APIResponse(
        message="Login successful",
        data=AuthData(user=UserProfile.model_validate(user), token=token),
    )


@router.post("/logout", response_model=APIResponse[None])
def logout(
    context: AuthContext = Depends(get_auth_context),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Revoke the token used for this request"""
    auth_service.logout(context.user, context.jti)
    return APIResponse(message="Logout successful")


@router.post("/verify", response_model=APIResponse[ProfileData])
def verify(context: AuthContext = Depends(get_auth_context)):
    return APIResponse(
        message="Token is valid",
        data=ProfileData(user=UserProfile.model_validate(context.user)),
    )


@router.post("/refresh", response_model=APIResponse[TokenData])
def refresh(
    context: AuthContext = Depends(get_auth_context),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Issue an additional token; the presented one stays valid"""
    return APIResponse(
        message="Token refreshed successfully",
        data=TokenData(token=auth_service.issue_token(context.user)),
    )

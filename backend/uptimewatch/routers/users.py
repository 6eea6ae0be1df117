"""User API endpoints: sign-up and profile management."""
from fastapi import APIRouter, Depends

from ..dependencies import AppServices, get_current_user_id, get_services
from ..schemas import UserCreate, UserResponse, UserUpdate

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserResponse)
async def create_user(data: UserCreate, services: AppServices = Depends(get_services)):
    """Sign up a new user."""
    user = await services.accounts.create_user(data)
    return UserResponse.model_validate(user, from_attributes=True)


@router.get("/me", response_model=UserResponse)
async def get_user(
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Get the signed-in user's profile."""
    user = await services.accounts.get_user(user_id)
    return UserResponse.model_validate(user, from_attributes=True)


@router.put("/me", response_model=UserResponse)
async def update_user(
    data: UserUpdate,
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Edit the signed-in user's profile."""
    user = await services.accounts.update_user(user_id, data)
    return UserResponse.model_validate(user, from_attributes=True)


@router.delete("/me")
async def delete_user(
    user_id: str = Depends(get_current_user_id),
    services: AppServices = Depends(get_services),
):
    """Delete the signed-in user, their checks and their sessions."""
    await services.accounts.delete_user(user_id)
    return {"deleted": user_id}

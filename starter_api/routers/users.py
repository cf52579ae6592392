import uuid

from fastapi import APIRouter

from starter_api.dependencies import CurrentUser, Pagination, UserServiceDep
from starter_api.schemas import APIResponse, Page, UserResponse, UserUpdate, success

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=APIResponse[Page[UserResponse]])
async def list_users(pagination: Pagination, user: CurrentUser, users: UserServiceDep):
    return success(await users.list(pagination))


@router.patch("/me", response_model=APIResponse[UserResponse])
async def update_me(data: UserUpdate, user: CurrentUser, users: UserServiceDep):
    updated = await users.update_profile(user, data)
    return success(UserResponse.model_validate(updated), "Profile updated")


@router.delete("/me", status_code=204)
async def deactivate_me(user: CurrentUser, users: UserServiceDep):
    await users.deactivate(user)


@router.get("/{user_id}", response_model=APIResponse[UserResponse])
async def get_user(user_id: uuid.UUID, user: CurrentUser, users: UserServiceDep):
    return success(UserResponse.model_validate(await users.get(user_id)))

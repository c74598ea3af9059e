"""
Users API router.

Defines the users resource endpoints:
- POST / - Create a user
- GET / - List all users
- GET /{user_id} - Get a user by id
- PUT /{user_id} - Overwrite a user
- DELETE /{user_id} - Delete a user
"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from app.core.database import SessionGuard, get_session_guard
from app.users.schemas import USER_ID_MAX, USER_ID_MIN, UserCreate, UserRead, UserUpdate
from app.users.service import (
    DatabaseUnavailableError,
    UserConflictError,
    UserNotFoundError,
    UserService,
    UserServiceError,
)

router = APIRouter(tags=["users"])

UserId = Annotated[int, Path(ge=USER_ID_MIN, le=USER_ID_MAX, description="User id")]


def get_service(
    request: Request,
    guard: SessionGuard = Depends(get_session_guard),
) -> UserService:
    """Dependency to get the user service bound to the shared guard."""
    return UserService(
        guard,
        report_missing_rows=request.app.state.settings.report_missing_rows,
    )


def _to_http_error(error: UserServiceError) -> HTTPException:
    if isinstance(error, UserNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, UserConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, DatabaseUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(error))


# ============================================================================
# Collection Endpoints
# ============================================================================

@router.post(
    "",
    response_model=str,
    summary="Create a user",
    description="Insert a user record with a caller-chosen id.",
)
async def create_user(
    user: UserCreate,
    service: UserService = Depends(get_service),
) -> str:
    """
    Create a new user.

    - **id**: Caller-chosen integer id, must not exist yet
    - **first_name** / **last_name**: Non-empty names
    - **email**: Valid email address
    """
    try:
        return await service.create_user(user)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.get(
    "",
    response_model=list[UserRead],
    summary="List users",
    description="Return every user record. Order is not guaranteed.",
)
async def list_users(
    service: UserService = Depends(get_service),
) -> list[UserRead]:
    try:
        return await service.list_users()
    except UserServiceError as e:
        raise _to_http_error(e)


# ============================================================================
# Item Endpoints
# ============================================================================

@router.get(
    "/{user_id}",
    response_model=UserRead | None,
    summary="Get a user",
    description="Return the user with the given id, or null when it does not exist.",
)
async def get_user(
    user_id: UserId,
    service: UserService = Depends(get_service),
) -> UserRead | None:
    try:
        return await service.get_user(user_id)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.put(
    "/{user_id}",
    response_model=str,
    summary="Update a user",
    description="Overwrite first name, last name and email of the user with the path id.",
)
async def update_user(
    user_id: UserId,
    user: UserUpdate,
    service: UserService = Depends(get_service),
) -> str:
    """
    Overwrite a user.

    The id in the request body is ignored; the path id selects the row.
    Updating an id that does not exist succeeds without creating a row.
    """
    try:
        return await service.update_user(user_id, user)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.delete(
    "/{user_id}",
    response_model=str,
    summary="Delete a user",
    description="Delete the user with the given id.",
)
async def delete_user(
    user_id: UserId,
    service: UserService = Depends(get_service),
) -> str:
    try:
        return await service.delete_user(user_id)
    except UserServiceError as e:
        raise _to_http_error(e)

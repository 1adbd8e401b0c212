from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.deps import check_identity_hints, get_current_user, get_db, get_pagination, require_role, Pagination
from app.core.permissions import USER_ADMIN_ROLES
from app.core.responses import paginated_response, success_response, unwrap
from app.models.user import User
from app.schemas.user import (
    HourlyRateUpdate, UserCreate, UserHourlyRate, UserProject, UserResponse, UserStats, UserUpdate
)
from app.services.organization_service import organization_service
from app.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def list_users(
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = organization_service.list_users(
        db, current_user.organization_id, role=role, is_active=is_active, search=search,
        limit=pagination.page_size, offset=pagination.offset
    )
    return paginated_response(
        [UserResponse.model_validate(u) for u in result["users"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_role(USER_ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Create a user in the current organization (admin only)."""
    user = unwrap(
        user_service.create_user(db, current_user.organization_id, user_data.model_dump(), current_user.id), "user"
    )
    return success_response(UserResponse.model_validate(user))


@router.get("/hourly-rates")
async def list_hourly_rates(
    current_user: User = Depends(require_role(USER_ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Active users of the organization with their hourly rates (admin only)."""
    result = user_service.list_hourly_rates(db, current_user.organization_id)
    return success_response([UserHourlyRate.model_validate(u) for u in result["users"]])


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = unwrap(user_service.get_user(db, user_id, current_user.organization_id), "user")
    return success_response(UserResponse.model_validate(user))


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = unwrap(
        user_service.update_user(
            db, user_id, current_user.organization_id, current_user, user_data.model_dump(exclude_unset=True)
        ),
        "user"
    )
    return success_response(UserResponse.model_validate(user))


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current_user: User = Depends(require_role(USER_ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    unwrap(user_service.delete_user(db, user_id, current_user.organization_id, current_user))
    return success_response({"id": user_id, "deleted": True})


@router.get("/{user_id}/stats")
async def get_user_stats(
    user_id: int,
    current_user: User = Depends(check_identity_hints),
    db: Session = Depends(get_db)
):
    stats = unwrap(user_service.get_user_stats(db, user_id, current_user.organization_id), "stats")
    return success_response(UserStats(**stats))


@router.get("/{user_id}/hourly-rate")
async def get_hourly_rate(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = unwrap(user_service.get_hourly_rate(db, user_id, current_user.organization_id, current_user), "user")
    return success_response({"user_id": user.id, "hourly_rate": float(user.hourly_rate or 0)})


@router.api_route("/{user_id}/hourly-rate", methods=["PUT", "PATCH"])
async def set_hourly_rate(
    user_id: int,
    body: HourlyRateUpdate,
    current_user: User = Depends(require_role(USER_ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Change a user's hourly rate; only draft timesheets are repriced."""
    result = user_service.set_hourly_rate(db, user_id, current_user.organization_id, body.hourly_rate, current_user)
    user = unwrap(result, "user")
    data = UserHourlyRate.model_validate(user).model_dump()
    data["repriced_timesheets"] = result["repriced_timesheets"]
    return success_response(data)


@router.get("/{user_id}/projects")
async def get_user_projects(
    user_id: int,
    current_user: User = Depends(check_identity_hints),
    db: Session = Depends(get_db)
):
    result = user_service.get_user_projects(db, user_id, current_user.organization_id, current_user)
    unwrap(result)
    return success_response([UserProject(**p) for p in result["projects"]])

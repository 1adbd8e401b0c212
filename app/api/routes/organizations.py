from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.api.deps import get_current_user, get_db, get_pagination, require_role, Pagination
from app.core.permissions import USER_ADMIN_ROLES
from app.core.responses import paginated_response, success_response, unwrap
from app.models.user import User
from app.schemas.organization import OrganizationResponse, OrganizationStats, OrganizationUpdate
from app.schemas.user import UserResponse
from app.services.organization_service import organization_service

router = APIRouter(prefix="/organizations", tags=["Organizations"])


def ensure_own_organization(organization_id: int, current_user: User):
    # Other organizations are reported as missing
    if organization_id != current_user.organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")


@router.get("/{organization_id}")
async def get_organization(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ensure_own_organization(organization_id, current_user)
    organization = unwrap(organization_service.get_organization(db, organization_id), "organization")
    return success_response(OrganizationResponse.model_validate(organization))


@router.put("/{organization_id}")
async def update_organization(
    organization_id: int,
    org_data: OrganizationUpdate,
    current_user: User = Depends(require_role(USER_ADMIN_ROLES)),
    db: Session = Depends(get_db)
):
    """Update organization settings (admin only)."""
    ensure_own_organization(organization_id, current_user)
    organization = unwrap(
        organization_service.update_organization(
            db, organization_id, org_data.model_dump(exclude_unset=True), current_user.id
        ),
        "organization"
    )
    return success_response(OrganizationResponse.model_validate(organization))


@router.get("/{organization_id}/users")
async def list_organization_users(
    organization_id: int,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ensure_own_organization(organization_id, current_user)
    result = organization_service.list_users(
        db, organization_id, role=role, is_active=is_active, search=search,
        limit=pagination.page_size, offset=pagination.offset
    )
    return paginated_response(
        [UserResponse.model_validate(u) for u in result["users"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.get("/{organization_id}/stats")
async def get_organization_stats(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Aggregate counts and sums, computed on every request."""
    ensure_own_organization(organization_id, current_user)
    stats = unwrap(organization_service.get_organization_stats(db, organization_id), "stats")
    return success_response(OrganizationStats(**stats))

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_current_member, get_db, require_owner
from clientdesk.schemas.common import ListResponse
from clientdesk.schemas.organization import (
    MemberApiKeyRead,
    MemberCreate,
    MemberRead,
    MemberUpdate,
    OrganizationRead,
    OrganizationSignup,
    OrganizationSignupRead,
    OrganizationUpdate,
)
from clientdesk.services import auth as auth_service
from clientdesk.services import organizations as organization_service

public_router = APIRouter(tags=["organizations"])
router = APIRouter()


@public_router.post(
    "/organizations/signup",
    response_model=OrganizationSignupRead,
    status_code=status.HTTP_201_CREATED,
)
def signup_organization(payload: OrganizationSignup, db: Session = Depends(get_db)):
    organization, owner, api_key = organization_service.organizations.create(
        db, payload, payload.owner
    )
    return {"organization": organization, "owner": owner, "api_key": api_key}


@router.get("/organizations/me", response_model=OrganizationRead, tags=["organizations"])
def get_my_organization(
    auth=Depends(get_current_member), db: Session = Depends(get_db)
):
    return organization_service.organizations.get(db, auth["org_id"])


@router.patch("/organizations/me", response_model=OrganizationRead, tags=["organizations"])
def update_my_organization(
    payload: OrganizationUpdate,
    auth=Depends(require_owner),
    db: Session = Depends(get_db),
):
    return organization_service.organizations.update(db, auth["org_id"], payload)


@router.post(
    "/members",
    response_model=MemberApiKeyRead,
    status_code=status.HTTP_201_CREATED,
    tags=["members"],
)
def create_member(
    payload: MemberCreate, auth=Depends(require_owner), db: Session = Depends(get_db)
):
    member, api_key = organization_service.members.create(db, auth["org_id"], payload)
    return {"member": member, "api_key": api_key}


@router.get("/members", response_model=ListResponse[MemberRead], tags=["members"])
def list_members(
    is_active: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(get_current_member),
    db: Session = Depends(get_db),
):
    return organization_service.members.list_response(
        db, auth["org_id"], is_active, limit, offset
    )


@router.get("/members/{member_id}", response_model=MemberRead, tags=["members"])
def get_member(
    member_id: str, auth=Depends(get_current_member), db: Session = Depends(get_db)
):
    return organization_service.members.get(db, auth["org_id"], member_id)


@router.patch("/members/{member_id}", response_model=MemberRead, tags=["members"])
def update_member(
    member_id: str,
    payload: MemberUpdate,
    auth=Depends(require_owner),
    db: Session = Depends(get_db),
):
    return organization_service.members.update(db, auth["org_id"], member_id, payload)


@router.post("/members/{member_id}/api-key", response_model=MemberApiKeyRead, tags=["members"])
def rotate_member_api_key(
    member_id: str, auth=Depends(require_owner), db: Session = Depends(get_db)
):
    member = organization_service.members.get(db, auth["org_id"], member_id)
    api_key = auth_service.issue_api_key(db, member.id)
    db.refresh(member)
    return {"member": member, "api_key": api_key}


@router.delete(
    "/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["members"]
)
def deactivate_member(
    member_id: str, auth=Depends(require_owner), db: Session = Depends(get_db)
):
    organization_service.members.deactivate(db, auth["org_id"], member_id)

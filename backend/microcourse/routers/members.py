from __future__ import annotations
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from ..deps import get_store
from ..errors import Forbidden, NotFound, ValidationFailed
from ..records import Role, User
from ..store import DomainStore
from .auth import require_admin


router = APIRouter(prefix="/members", tags=["members"])

logger = logging.getLogger(__name__)


class AddMemberRequest(BaseModel):
    email: EmailStr
    display_name: Optional[str] = None
    roles: List[Role] = Field(default_factory=lambda: ["learner"], min_length=1)


class RolesUpdate(BaseModel):
    roles: List[Role] = Field(min_length=1)


@router.get("", response_model=List[User])
async def list_members(user: User = Depends(require_admin), store: DomainStore = Depends(get_store)):
    return store.list(User, org_id=user.org_id)


@router.post("", response_model=User)
async def add_member(req: AddMemberRequest, user: User = Depends(require_admin), store: DomainStore = Depends(get_store)):
    if not user.org_id:
        raise ValidationFailed("No organization associated with user")
    email = str(req.email).strip().lower()
    existing = store.find(User, email=email)
    if existing is not None:
        if existing.org_id == user.org_id:
            return existing
        if existing.org_id is not None:
            raise Forbidden("User already belongs to another organization")
        return store.update(User, existing.id, org_id=user.org_id, roles=list(req.roles))
    member = store.create(
        User(
            email=email,
            display_name=req.display_name or email.split("@")[0],
            org_id=user.org_id,
            roles=list(req.roles),
        )
    )
    logger.info("Added member %s to organization %s", member.id, user.org_id)
    return member


@router.patch("/{member_id}", response_model=User)
async def update_roles(
    member_id: str,
    req: RolesUpdate,
    user: User = Depends(require_admin),
    store: DomainStore = Depends(get_store),
):
    member = store.get(User, member_id)
    if member is None or member.org_id != user.org_id:
        raise NotFound("Member not found")
    # dict.fromkeys keeps order while dropping repeats
    updated = store.update(User, member.id, roles=list(dict.fromkeys(req.roles)))
    if updated is None:
        raise NotFound("Member not found")
    return updated

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from app.auth.firebase_auth import Identity
from app.auth.permissions import get_current_user, get_optional_identity, PortalUser
from app.auth.role_resolver import Role
from app.core.dependencies import (
    get_identity_provider, get_repository, get_role_service, get_session_manager
)
from app.core.exceptions import AuthenticationError

router = APIRouter(tags=["Auth"])


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class SessionRequest(BaseModel):
    id_token: str = Field(..., min_length=1)


async def _session_response(identity: Identity, sessions, roles) -> dict:
    resolution = await roles.resolve(identity)
    return {
        "access_token": sessions.create(identity),
        "token_type": "bearer",
        "uid": identity.uid,
        "email": identity.email,
        "role": resolution.role.value,
        "dashboard_path": resolution.dashboard_path,
    }


@router.post("/auth/login")
async def login(
    data: LoginRequest,
    identity_provider=Depends(get_identity_provider),
    sessions=Depends(get_session_manager),
    roles=Depends(get_role_service)
):
    """
    Email/password sign-in; returns a session token and where to land
    """
    identity = await identity_provider.sign_in(data.email.strip(), data.password)
    return await _session_response(identity, sessions, roles)


@router.post("/auth/session")
async def exchange_id_token(
    data: SessionRequest,
    identity_provider=Depends(get_identity_provider),
    sessions=Depends(get_session_manager),
    roles=Depends(get_role_service)
):
    """
    Exchange an ID token from the identity provider for a portal session
    """
    identity = await identity_provider.verify_id_token(data.id_token)
    return await _session_response(identity, sessions, roles)


@router.post("/auth/logout")
async def logout(
    authorization: Optional[str] = Header(None),
    sessions=Depends(get_session_manager)
):
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        sessions.revoke(authorization.split(" ", 1)[1].strip())
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.message)

    return {"status": "success", "message": "Signed out"}


@router.get("/auth/role")
async def current_role(
    identity: Optional[Identity] = Depends(get_optional_identity),
    roles=Depends(get_role_service)
):
    """
    Resolved role and dashboard path; guests get role 'guest' and '/'
    """
    resolution = await roles.resolve(identity)
    return {
        "uid": identity.uid if identity else None,
        "email": identity.email if identity else None,
        "role": resolution.role.value,
        "dashboard_path": resolution.dashboard_path,
    }


@router.get("/profile")
async def profile(
    user: PortalUser = Depends(get_current_user),
    repo=Depends(get_repository)
):
    """
    The signed-in user's own record
    """
    document = None
    if user.role == Role.STUDENT.value:
        document = await repo.get("users", user.uid)
    elif user.role == Role.FACULTY.value:
        document = await repo.get("faculties", user.uid)

    return {
        "uid": user.uid,
        "email": user.email,
        "role": user.role,
        "dashboard_path": user.dashboard_path,
        "profile": document,
    }


@router.get("/about")
async def about():
    return {
        "name": "Academic Assignment Portal",
        "description": "Faculty publish assignments to their classes, students upload work "
                       "before the deadline and faculty verify or reject each submission.",
        "roles": [r.value for r in Role if r != Role.GUEST],
    }

"""
 Admin tools for user accounts, plus the platform numbers for the admin dashboard.

 Main things it does:
 1. List users / look at one user
 2. Verify, block and unblock accounts
 3. Platform stats (users per role, projects per status, money donated)

 Watch out for:
 - Admins can't be blocked, otherwise you could lock everybody out
 - Blocking is instant, the blocked user's next request gets a 403
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from models import PlatformStats, UserPublic
from security import require_roles
from storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter()

admin_only = require_roles("admin")


def get_user_or_404(storage, user_id):
    user = storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/users", response_model=List[UserPublic])
def list_users(user=Depends(admin_only), storage=Depends(get_storage)):
    return storage.list_users()


@router.get("/admin/users", response_model=List[UserPublic])
def list_users_for_admin(user=Depends(admin_only), storage=Depends(get_storage)):
    return storage.list_users()


@router.get("/users/{user_id}", response_model=UserPublic)
def get_user(user_id: int, user=Depends(admin_only), storage=Depends(get_storage)):
    return get_user_or_404(storage, user_id)


@router.post("/users/{user_id}/verify", response_model=UserPublic)
def verify_user(user_id: int, user=Depends(admin_only), storage=Depends(get_storage)):
    get_user_or_404(storage, user_id)
    return storage.verify_user(user_id)


@router.post("/users/{user_id}/block", response_model=UserPublic)
def block_user(user_id: int, user=Depends(admin_only), storage=Depends(get_storage)):
    target = get_user_or_404(storage, user_id)
    if target["role"] == "admin":
        raise HTTPException(status_code=400, detail="Admins can't be blocked")

    logger.info("%s blocked user %s", user["username"], target["username"])
    return storage.block_user(user_id)


@router.post("/users/{user_id}/unblock", response_model=UserPublic)
def unblock_user(user_id: int, user=Depends(admin_only), storage=Depends(get_storage)):
    get_user_or_404(storage, user_id)
    return storage.unblock_user(user_id)


@router.get("/admin/stats", response_model=PlatformStats)
def platform_stats(user=Depends(admin_only), storage=Depends(get_storage)):
    return storage.get_platform_stats()

"""
Login sessions, password hashing and "who is allowed to do what".

How sessions work:
- Starlette's SessionMiddleware (set up in main.py) keeps a signed cookie
- After login/register we put is_logged_in, user_id, user_role and username in it
- Every protected route asks for get_current_user (or require_roles(...)),
  which reloads the user from storage so blocking someone takes effect right away

Error codes you'll see from here:
- 401 if you're not logged in
- 403 if you're logged in but blocked, or your role isn't allowed

Watch out for:
- Passwords are hashed with passlib (pbkdf2_sha256), never store them raw
- The session cookie is signed, NOT encrypted, so don't put secrets in it
"""

import secrets

from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext

from models import STAFF_ROLES
from storage import get_storage

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password):
    return pwd_context.hash(password)


def verify_password(password, hashed):
    if not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:                              # not a hash passlib knows about
        return False


def make_verification_token():
    return secrets.token_urlsafe(32)


def public_user(user):
    """User row without the password hash and the verification token."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k not in ("password", "verification_token")}


                                                    # ----------------------------
                                                    # Session helpers
                                                    # ----------------------------

def login_session(request: Request, user):
    request.session.update({
        "is_logged_in": True,
        "user_id": user["id"],
        "user_role": user["role"],
        "username": user["username"],
    })


def logout_session(request: Request):
    request.session.clear()


def get_optional_user(request: Request, storage=Depends(get_storage)):
    """The logged in (and not blocked) user, or None for guests."""
    if not request.session.get("is_logged_in"):
        return None
    user = storage.get_user(request.session.get("user_id"))
    if not user or user["is_blocked"]:
        return None
    return user


def get_current_user(request: Request, storage=Depends(get_storage)):
    if not request.session.get("is_logged_in"):
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = storage.get_user(request.session.get("user_id"))
    if not user:
        logout_session(request)                     # stale cookie, the user is gone
        raise HTTPException(status_code=401, detail="Not authenticated")
    if user["is_blocked"]:
        raise HTTPException(status_code=403, detail="Your account is blocked")
    return user


def require_roles(*roles):
    """Dependency factory: Depends(require_roles("coordinator", "admin"))"""
    def checker(user=Depends(get_current_user)):
        if user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return checker


                                                    # ----------------------------
                                                    # Ownership checks
                                                    # ----------------------------

def is_staff(user):
    return bool(user) and user["role"] in STAFF_ROLES


def can_manage_project(user, project):
    """Admins manage everything, coordinators only their own projects."""
    if not user:
        return False
    if user["role"] == "admin":
        return True
    return user["role"] == "coordinator" and project["coordinator_id"] == user["id"]


def can_view_project(user, project):
    if project["moderation_status"] == "approved":
        return True
    return is_staff(user) or can_manage_project(user, project)


def ensure_project_manager(user, project):
    if not can_manage_project(user, project):
        raise HTTPException(status_code=403, detail="Only the project's coordinator or an admin can do this")

"""
 This module handles accounts - signing up, logging in and out, and looking after your own profile.

 Main things it does:
 1. Register a new volunteer / coordinator / donor (and log them in straight away)
 2. Log in with email + password, log out
 3. Tell the frontend who is logged in (GET /api/user)
 4. Verify an email with the token we generated at registration
 5. Update your profile and change your password

 Important notes:
 - Admin and moderator accounts can't be self-registered, they come from seed.py or the database
 - Emails are compared case-insensitively
 - Blocked users can't log in (403)
 Watch out for:
 - No email is actually sent, the verification token just sits in the users table
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

import config
from models import (
    LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest, UserPublic, VerifyEmailRequest,
)
from security import (
    get_current_user, hash_password, login_session, logout_session,
    make_verification_token, verify_password,
)
from storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter()


                                                                    # ---------------------------------------------
                                                                    # Sign up (and get logged in right away)
                                                                    # ---------------------------------------------
@router.post("/register", response_model=UserPublic, status_code=201)
def register(payload: RegisterRequest, request: Request, storage=Depends(get_storage)):
    if storage.get_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="A user with this email already exists")
    if storage.get_user_by_username(payload.username):
        raise HTTPException(status_code=400, detail="This username is already taken")

    data = payload.model_dump(exclude={"confirm_password"})
    data["password"] = hash_password(payload.password)
    if config.AUTO_VERIFY_USERS:
        data["is_verified"] = True
    else:
        data["verification_token"] = make_verification_token()

    try:
        user = storage.create_user(data)
    except ValueError as e:                                         # lost a race on the unique email/username
        raise HTTPException(status_code=400, detail=str(e))

    login_session(request, user)
    logger.info("Registered %s as %s", user["username"], user["role"])
    return user


@router.post("/login", response_model=UserPublic)
def login(payload: LoginRequest, request: Request, storage=Depends(get_storage)):
    user = storage.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if user["is_blocked"]:
        raise HTTPException(status_code=403, detail="Your account is blocked")

    login_session(request, user)
    return user


@router.post("/logout")
def logout(request: Request):
    logout_session(request)
    return {"message": "Logged out"}


@router.get("/user", response_model=UserPublic)
def current_user(user=Depends(get_current_user)):
    return user


@router.post("/verify-email")
def verify_email(payload: VerifyEmailRequest, storage=Depends(get_storage)):
    if not payload.token:
        raise HTTPException(status_code=400, detail="Verification token is required")

    user = storage.get_user_by_verification_token(payload.token)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")

    storage.verify_user(user["id"])
    return {"message": "Email verified"}


                                                                    # ---------------------------------------------
                                                                    # Your own profile
                                                                    # ---------------------------------------------
@router.patch("/user/profile", response_model=UserPublic)
def update_profile(
    payload: ProfileUpdate,
    request: Request,
    user=Depends(get_current_user),
    storage=Depends(get_storage),
):
    fields = payload.model_dump(exclude_unset=True)

                                                                    # username / email must stay unique
    if fields.get("username") and fields["username"] != user["username"]:
        other = storage.get_user_by_username(fields["username"])
        if other and other["id"] != user["id"]:
            raise HTTPException(status_code=400, detail="This username is already taken")
    if fields.get("email") and fields["email"] != user["email"]:
        other = storage.get_user_by_email(fields["email"])
        if other and other["id"] != user["id"]:
            raise HTTPException(status_code=400, detail="A user with this email already exists")

    for key in ("username", "email"):                               # both are NOT NULL
        if key in fields and not fields[key]:
            del fields[key]

    try:
        updated = storage.update_user(user["id"], fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    request.session["username"] = updated["username"]
    return updated


@router.post("/user/change-password")
def change_password(payload: PasswordChange, user=Depends(get_current_user), storage=Depends(get_storage)):
    if not verify_password(payload.current_password, user["password"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    storage.update_user(user["id"], {"password": hash_password(payload.new_password)})
    return {"message": "Password changed"}

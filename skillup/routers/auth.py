"""
Auth router — Register, Login, Profile.

Rules:
- Each role registers and logs in under its own prefix
- Login accepts a username, or an email when the value contains "@"
- The returned JWT embeds {id, role}; every other route re-checks both
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from skillup.core.security import (
    ROLES,
    STUDENT,
    create_access_token,
    get_current_user,
    get_password_hash,
    verify_password,
)
from skillup.core.database import get_supabase
from skillup.schemas.auth import PasswordChange, ProfileUpdate, UserLogin, UserRegister
from skillup.services.users import create_user, find_users, get_user, public_user, update_user, with_memberships
from skillup.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _check_role(role: str) -> str:
    role = role.lower()
    if role not in ROLES:
        raise HTTPException(status_code=404, detail=f"Unknown role '{role}'")
    return role


@router.post("/{role}/register", status_code=status.HTTP_201_CREATED)
async def register(role: str, body: UserRegister):
    role = _check_role(role)
    if role == STUDENT and not body.roll_number:
        raise HTTPException(status_code=400, detail="roll_number: Field required")

    db = get_supabase()
    fields = body.model_dump()
    if role != STUDENT:
        fields.pop("roll_number", None)
        fields.pop("semester", None)

    user = create_user(db, role, fields)
    token = create_access_token(user["id"], role)
    return success_response(
        data={"token": token, "user": user},
        message="Registration successful! Please sign in to continue.",
    )


@router.post("/{role}/login")
async def login(role: str, body: UserLogin):
    role = _check_role(role)
    db = get_supabase()

    identifier = body.username.strip()
    column = "email" if "@" in identifier else "username"
    matches = find_users(db, column, identifier, role=role)
    user_data = matches[0] if matches else None

    if not user_data or not verify_password(body.password, user_data.get("password_hash") or ""):
        logger.info("Failed %s login for %r", role, identifier)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user_data.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated.",
        )

    token = create_access_token(user_data["id"], role)
    return success_response(
        data={"token": token, "user": public_user(user_data)},
        message="Login successful! Welcome back.",
    )


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Current user's profile, with batches (students) or courses (faculty)."""
    db = get_supabase()
    return success_response(data=with_memberships(db, user))


@router.put("/update-profile")
async def update_profile(body: ProfileUpdate, user: dict = Depends(get_current_user)):
    db = get_supabase()
    fields = body.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    if user["role"] != STUDENT:
        fields.pop("semester", None)

    updated = update_user(db, user, fields)
    return success_response(data=updated, message="Profile updated successfully")


@router.put("/change-password")
async def change_password(body: PasswordChange, user: dict = Depends(get_current_user)):
    db = get_supabase()
    stored = get_user(db, user["id"])
    if not verify_password(body.current_password, stored.get("password_hash") or ""):
        raise HTTPException(status_code=400, detail="Current password is incorrect.")

    db.table("users").update(
        {"password_hash": get_password_hash(body.new_password)}
    ).eq("id", user["id"]).execute()
    logger.info("Password changed for %s %s", user["role"], user["id"])
    return success_response(message="Password changed successfully")

"""
Security module — password hashing, JWT issuance/verification, role guard.

Auth Flow:
1. User registers or logs in under /api/auth/{role}
2. Backend signs a JWT embedding {id, role}
3. Frontend sends it as `Authorization: Bearer <token>`
4. Backend verifies the signature and expiry
5. Backend re-loads the user row to confirm it still exists with that role
6. Route guards check the role; resource ownership is checked in core.access
"""

from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from skillup.core.config import settings
from skillup.core.database import get_supabase, single_row

ADMIN = "admin"
FACULTY = "faculty"
STUDENT = "student"
ROLES = (ADMIN, FACULTY, STUDENT)

security_scheme = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8')[:72],
            hashed_password.encode('utf-8'),
        )
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    # Bcrypt has a 72 byte limit
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8')[:72], salt)
    return hashed.decode('utf-8')


def create_access_token(user_id: str, role: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {"id": user_id, "role": role, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token.",
        )


# ---------------------------------------------------------------------------
# Token verification — the core auth dependency
# ---------------------------------------------------------------------------
async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
) -> dict:
    """
    Validate the Bearer token and return the caller's user row
    (without the password hash).
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided.",
        )

    claims = decode_token(credentials.credentials)
    user_id = claims.get("id")
    role = claims.get("role")
    if not user_id or role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token.",
        )

    db = get_supabase()
    user_data = single_row(
        db.table("users").select("*").eq("id", user_id).maybe_single().execute()
    )

    # Role must still match what the token was issued for
    if not user_data or user_data.get("role") != role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User for this token no longer exists.",
        )

    if not user_data.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated.",
        )

    return {k: v for k, v in user_data.items() if k != "password_hash"}


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/admin-only")
        async def endpoint(user=Depends(require_role(["admin"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden. Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker

"""
Session Authentication Module

Static credential login, guest sessions and the role dependencies used by
every API route. Sessions live in a signed (HS256 JWT) cookie.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from typing import Optional
import jwt
import logging
import time

from ..errors import AuthError, ForbiddenError, SessionRevokedError
from ..models import User, UserRole
from ..services.context import SoundboardContext, get_context
from ..services.policy import (
    check_credentials, require_admin, require_superadmin, require_user
)

logger = logging.getLogger(__name__)

router = APIRouter()

ALGORITHM = "HS256"


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Remote address, or the first X-Forwarded-For hop behind a trusted proxy."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def issue_token(user: User, secret: str, ttl: int) -> str:
    now = int(time.time())
    payload = {
        "sub": user.username,
        "role": user.role.value,
        "iat": now,
        "exp": now + ttl,
    }
    if user.ip:
        payload["ip"] = user.ip
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> Optional[User]:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        return User(
            username=payload["sub"],
            role=UserRole(payload["role"]),
            ip=payload.get("ip")
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired")
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.warning(f"Rejected session token: {e}")
    return None


def _set_session(response: Response, ctx: SoundboardContext, user: User):
    cfg = ctx.config
    response.set_cookie(
        cfg.COOKIE_NAME,
        issue_token(user, cfg.SESSION_SECRET, cfg.SESSION_TTL),
        max_age=cfg.SESSION_TTL,
        httponly=True,
        samesite="lax",
        secure=cfg.COOKIE_SECURE,
    )


async def get_optional_user(
    request: Request,
    ctx: SoundboardContext = Depends(get_context)
) -> Optional[User]:
    """
    Resolve the session cookie to a user.

    Named users must still be in the credential table with the same role.
    Guest sessions are re-checked against the guest toggle and block list,
    and torn down if either no longer admits them.
    """
    token = request.cookies.get(ctx.config.COOKIE_NAME)
    if not token:
        return None

    user = decode_token(token, ctx.config.SESSION_SECRET)
    if user is None:
        return None

    if user.is_guest:
        if not ctx.guests.admits(user.ip):
            logger.info(f"Guest session for {user.ip} revoked")
            raise SessionRevokedError("Guest access has been revoked")
        return user

    entry = ctx.config.USERS.get(user.username)
    if entry is None or entry["role"] != user.role.value:
        return None
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    return require_user(user)


async def get_admin_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    return require_admin(user)


async def get_superadmin_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    return require_superadmin(user)


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    ctx: SoundboardContext = Depends(get_context)
):
    """Log in against the static credential table."""
    user = check_credentials(ctx.config.USERS, body.username, body.password)
    if user is None:
        logger.warning(f"Failed login attempt for {body.username.strip().lower()!r}")
        raise AuthError("Invalid username or password")

    _set_session(response, ctx, user)
    logger.info(f"User {user.username} logged in as {user.role.value}")
    return {"username": user.username, "role": user.role}


@router.post("/logout")
async def logout(response: Response, ctx: SoundboardContext = Depends(get_context)):
    response.delete_cookie(ctx.config.COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/guest/status")
async def guest_status(ctx: SoundboardContext = Depends(get_context)):
    """Whether the login page should offer guest access."""
    return {"enabled": ctx.guests.is_enabled()}


@router.post("/guest/start")
async def start_guest_session(
    request: Request,
    response: Response,
    ctx: SoundboardContext = Depends(get_context)
):
    """Open a guest session for the caller's IP."""
    ip = client_ip(request, ctx.config.TRUST_PROXY)
    data = ctx.guests.load()
    if not data.enabled:
        raise ForbiddenError("Guest access is disabled")
    if ip in data.blocked_ips:
        logger.warning(f"Blocked guest {ip} tried to start a session")
        raise ForbiddenError("Your IP address has been blocked")

    user = User(username="guest", role=UserRole.GUEST, ip=ip)
    _set_session(response, ctx, user)
    logger.info(f"Guest session started for {ip}")
    return {"username": user.username, "role": user.role}


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    """Get current user info."""
    return {"username": user.username, "role": user.role}

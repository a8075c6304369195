"""
Authorization Policy

Credential check, role gates and the playback override/lock rules.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import logging
from typing import Optional

from ..errors import AuthError, ForbiddenError
from ..models import PRIVILEGED_ROLES, StartedBy, User, UserRole

logger = logging.getLogger(__name__)


def check_credentials(users: dict, username, password) -> Optional[User]:
    """
    Look up a user in the static credential table.

    The username is trimmed and lowercased; the password is compared with
    plain equality.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        return None
    name = username.strip().lower()
    entry = users.get(name)
    if entry is None or entry["password"] != password:
        return None
    return User(username=name, role=UserRole(entry["role"]))


def require_user(user: Optional[User]) -> User:
    if user is None:
        raise AuthError("Not logged in")
    return user


def require_admin(user: Optional[User]) -> User:
    user = require_user(user)
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


def require_superadmin(user: Optional[User]) -> User:
    user = require_user(user)
    if not user.is_superadmin:
        raise ForbiddenError("Superadmin access required")
    return user


def is_blocked_by_lock(role: UserRole, locked: bool, locked_by: Optional[UserRole]) -> bool:
    """A superadmin lock blocks everyone but superadmins; an admin lock blocks user and guest."""
    if not locked or role == UserRole.SUPERADMIN:
        return False
    if locked_by == UserRole.SUPERADMIN:
        return True
    return role not in PRIVILEGED_ROLES


def can_toggle_lock(user: User, locked: bool, locked_by: Optional[UserRole]) -> bool:
    if not user.is_admin:
        return False
    # An admin cannot lift a superadmin's lock
    return not (locked and locked_by == UserRole.SUPERADMIN and not user.is_superadmin)


def can_preempt(user: User, started_by: Optional[StartedBy], active: bool) -> bool:
    """Whether user may start a new track over whatever is currently playing."""
    if user.is_admin or not active or started_by is None:
        return True
    return started_by.role not in PRIVILEGED_ROLES


def can_control(user: User, started_by: Optional[StartedBy]) -> bool:
    """
    Whether user may stop, pause or resume the active track.

    Superadmins may always. Tracks started by a user or guest may be
    controlled by any admin. A track started by an admin or superadmin is
    reserved to superadmins, except that the admin who started it keeps
    control of their own track; a different admin is refused.
    """
    if user.is_superadmin:
        return True
    if not user.is_admin:
        return False
    if started_by is None or started_by.role not in PRIVILEGED_ROLES:
        return True
    return started_by.role == UserRole.ADMIN and started_by.username == user.username

"""
Soundboard Errors

Domain exceptions raised by the services and rendered by the API layer.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from typing import Optional


class SoundboardError(Exception):
    """Base error carrying the HTTP status it maps to."""
    status_code: int = 500

    def __init__(self, detail: str, headers: Optional[dict] = None, **extra):
        super().__init__(detail)
        self.detail = detail
        self.headers = headers
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.detail, **self.extra}


class AuthError(SoundboardError):
    status_code = 401


class ForbiddenError(SoundboardError):
    status_code = 403


class ValidationError(SoundboardError):
    status_code = 400


class NotFoundError(SoundboardError):
    status_code = 404


class ConflictError(SoundboardError):
    status_code = 409


class RateLimitError(SoundboardError):
    status_code = 429

    def __init__(self, detail: str, cooldown_remaining: float):
        super().__init__(detail, cooldownRemaining=cooldown_remaining)
        self.cooldown_remaining = cooldown_remaining


class TransportError(SoundboardError):
    """Voice connection or audio pipeline failure."""
    status_code = 502


class SessionRevokedError(ForbiddenError):
    """Denied and the caller's session cookie is cleared."""

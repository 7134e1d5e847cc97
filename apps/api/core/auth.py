"""
Admin authorization.

The club has no accounts with passwords; members act as themselves by id and
a single shared admin password guards destructive or cross-member actions.
The password is handed to the application when it is built (app.state) and
read from there per request, never from a module constant.
"""
import hmac
from typing import Optional

from fastapi import Header, Request

from core.exceptions import ForbiddenError


def _expected_admin_password(request: Request) -> Optional[str]:
    return getattr(request.app.state, "admin_password", None)


def is_admin_request(request: Request, provided: Optional[str]) -> bool:
    expected = _expected_admin_password(request)
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())


def require_admin(
    request: Request,
    x_admin_password: Optional[str] = Header(default=None),
) -> None:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(require_admin)])
    """
    if not _expected_admin_password(request):
        raise ForbiddenError("Admin actions are disabled: no admin password configured")
    if not is_admin_request(request, x_admin_password):
        raise ForbiddenError("Invalid admin password")

import hmac

from fastapi import Header, HTTPException, Request


def require_admin(request: Request, x_admin_token: str = Header(default="")) -> None:
    expected = request.app.state.settings.api.admin_token
    if not expected or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(403, "Admin access required")

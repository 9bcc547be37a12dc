import hmac

from fastapi import Header

from backend.app.config import settings
from backend.app.errors import AdminApiDisabled, AdminKeyRequired


def require_admin_key(x_admin_key: str | None = Header(None, alias="x-admin-key")):
    """Operator routes are closed unless ADMIN_API_KEY is configured and sent."""
    if not settings.admin_api_key:
        raise AdminApiDisabled()
    # Header values may carry any byte, so compare encoded forms
    supplied = (x_admin_key or "").encode("utf-8")
    if not supplied or not hmac.compare_digest(supplied, settings.admin_api_key.encode("utf-8")):
        raise AdminKeyRequired()

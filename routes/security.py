"""
API key dependency for endpoints that trigger runs or change settings.
"""

from typing import Optional

from fastapi import Header, HTTPException

from config.settings import settings


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Require a matching X-API-Key header when API_KEY is configured."""
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

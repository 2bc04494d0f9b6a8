"""FastAPI dependency injection — DB sessions, the flow service, and caller identity.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on
error; the SDK and repositories only ever ``flush()``.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_db.engine import get_session_factory
from relocation_db.repository import ProfileRepository
from relocation_flows.service import FlowService


# ------------------------------------------------------------------
# Database session: transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# SDK components: stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_service(request: Request) -> FlowService:
    """Return the FlowService singleton from ``app.state``."""
    return request.app.state.service


# ------------------------------------------------------------------
# Caller identity: X-User-ID, optionally vouched for by the gateway
# ------------------------------------------------------------------

async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Extract the subject id from the ``X-User-ID`` header.

    Returns 401 when the header is missing or blank.  When
    ``TRUSTED_PROXY_SECRET`` is configured, a matching ``X-Proxy-Secret``
    header is also required (403 otherwise).
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Login required")

    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(
                status_code=403,
                detail="X-Proxy-Secret header is required",
            )
        # Constant-time comparison
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    return x_user_id.strip()


_profiles = ProfileRepository()


async def require_member(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Like ``get_user_id`` but also requires an active membership (403)."""
    if not await _profiles.is_member(db, user_id):
        raise HTTPException(status_code=403, detail="Membership required")
    return user_id


# ------------------------------------------------------------------
# Admin key
# ------------------------------------------------------------------

async def require_admin_key(
    request: Request,
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> str:
    """Validate ``X-Admin-Key`` against the configured admin key.

    403 when admin endpoints are disabled (no key configured) or the key
    does not match; 401 when the header is missing.
    """
    expected: str | None = request.app.state.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=403,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not configured)",
        )
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="X-Admin-Key header is required")
    if not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_admin_key

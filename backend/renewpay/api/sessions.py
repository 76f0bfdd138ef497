"""
Sessions API Endpoints

Sign-in creates a server-side session (and refreshes the payer profile);
sign-out deletes it together with any pending checkout it carried.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
import logging

from ..config import Settings, get_settings
from ..db.init_db import get_db
from ..models.subscriptions import SignInRequest
from ..services.session_service import create_session, end_session, get_session
from ..services.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def session_id_from_request(request: Request, settings: Settings) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


async def require_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Dependency resolving the signed-in session from the session cookie.

    Raises:
        HTTPException 401: No cookie or unknown session
    """
    session_data = await get_session(db, session_id_from_request(request, settings))
    if not session_data:
        raise HTTPException(
            status_code=401,
            detail={"error_code": "not_signed_in", "message": "Sign in to continue"}
        )
    return session_data


@router.post("")
async def sign_in_endpoint(
    body: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Sign in a user and start a session.

    Request Body:
        {"user_id": str, "full_name": str, "email": str, "phone": str}

    Returns:
        Session data; the session id is also set as an HTTP-only cookie
    """
    await SubscriptionRepository(db).upsert_profile(
        body.user_id, full_name=body.full_name, email=body.email, phone=body.phone
    )
    session_data = await create_session(db, body.user_id)

    # PayU posts back cross-site, which only carries SameSite=None cookies
    secure = settings.public_base_url.startswith("https")
    response.set_cookie(
        settings.session_cookie_name,
        session_data["session_id"],
        httponly=True,
        secure=secure,
        samesite="none" if secure else "lax",
    )

    return session_data


@router.get("/current")
async def get_current_session_endpoint(
    session_data: Dict[str, Any] = Depends(require_session)
) -> Dict[str, Any]:
    """Return the signed-in session, including any pending checkout."""
    return session_data


@router.delete("/current")
async def sign_out_endpoint(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """Sign out: delete the session and clear the cookie."""
    session_id = session_id_from_request(request, settings)
    ended = await end_session(db, session_id) if session_id else False
    response.delete_cookie(settings.session_cookie_name)
    return {"signed_out": ended}

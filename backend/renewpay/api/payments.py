"""
Payments API Endpoints

PayU return URLs. PayU posts the callback as an urlencoded form; query
string parameters (txnid added when the form was built) are merged in, with
form values taking precedence.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
import logging

from ..config import Settings, get_settings
from ..db.init_db import get_db
from ..models.payments import PaymentCallback
from ..models.subscriptions import ReconciliationResult
from ..services.reconciliation_service import handle_failure_callback, handle_success_callback
from .sessions import session_id_from_request

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


async def read_callback(request: Request) -> PaymentCallback:
    """Collect callback parameters from the query string and form body."""
    params: Dict[str, str] = dict(request.query_params)

    if request.headers.get("content-type", "").startswith(FORM_CONTENT_TYPE):
        form = await request.form()
        params.update({key: str(value) for key, value in form.items()})

    return PaymentCallback.model_validate(params)


@router.api_route("/payu/success", methods=["GET", "POST"])
async def payu_success_endpoint(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> ReconciliationResult:
    """
    PayU success URL (surl).

    failure/cancel status cleans up the pending renewal; anything else is
    hash-verified and reconciled. Safe to call again after a page reload.
    """
    callback = await read_callback(request)
    logger.info(f"PayU success callback: txnid={callback.txnid}, status={callback.status}")

    return await handle_success_callback(
        db, session_id_from_request(request, settings), callback, settings
    )


@router.api_route("/payu/failure", methods=["GET", "POST"])
async def payu_failure_endpoint(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> ReconciliationResult:
    """PayU failure URL (furl): always deletes the unpaid pending renewal."""
    callback = await read_callback(request)
    logger.info(f"PayU failure callback: txnid={callback.txnid}, status={callback.status}")

    return await handle_failure_callback(
        db, session_id_from_request(request, settings), callback
    )

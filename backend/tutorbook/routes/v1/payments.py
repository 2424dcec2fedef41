# backend/tutorbook/routes/v1/payments.py
"""
Payment routes for booked sessions.

Payment-intent creation is throttled twice: per client fingerprint by the
``payment_intent_rate_limit`` dependency, and per process by the payment
guard inside ``PaymentService``. Both answer 429 with ``Retry-After``.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_payment_service
from ...core.exceptions import DomainException
from ...ratelimit.dependency import payment_intent_rate_limit
from ...schemas.payment import PaymentIntentCreate, PaymentIntentResult, PaymentStatusResult
from ...services.payment_service import PaymentService
from ._common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post(
    "/{session_id}/payment-intent",
    response_model=PaymentIntentResult,
    dependencies=[Depends(payment_intent_rate_limit)],
)
async def create_payment_intent(
    session_id: str,
    payload: PaymentIntentCreate,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResult:
    try:
        return await asyncio.to_thread(
            payment_service.initiate_payment,
            session_id,
            payload.amount,
            description=payload.description,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{session_id}/payment-status", response_model=PaymentStatusResult)
async def get_payment_status(
    session_id: str,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentStatusResult:
    try:
        return await asyncio.to_thread(payment_service.get_payment_status, session_id)
    except DomainException as e:
        handle_domain_exception(e)

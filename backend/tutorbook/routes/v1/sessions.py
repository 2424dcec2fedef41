# backend/tutorbook/routes/v1/sessions.py
"""
Session routes: booking submission, reschedule and lifecycle.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_booking_service
from ...core.exceptions import DomainException
from ...schemas.session import SessionCancel, SessionCreate, SessionReschedule, SessionResponse
from ...services.booking_service import BookingService
from ._common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions-v1"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    """
    Book a session.

    409 SLOT_CONFLICT means the slot was taken or left the tutor's
    availability since it was displayed; refresh and pick another.
    """
    try:
        session = await asyncio.to_thread(
            booking_service.commit_booking,
            payload.tutor_id,
            payload.student_id,
            payload.start_time,
            payload.end_time,
            course_id=payload.course_id,
            notes=payload.notes,
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(booking_service.get_session, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/reschedule", response_model=SessionResponse)
async def reschedule_session(
    session_id: str,
    payload: SessionReschedule,
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(
            booking_service.reschedule_session,
            session_id,
            payload.start_time,
            payload.end_time,
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: str,
    payload: SessionCancel,
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(
            booking_service.cancel_session, session_id, reason=payload.reason
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(booking_service.complete_session, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)

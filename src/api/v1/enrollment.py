# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class enrollment API endpoints.

This module provides the endpoints students use to join a class:
- GET /{class_code}/eligibility - Advisory pre-check before the quiz
- POST /{class_code}/enrollments - Submit the quiz and enroll

Both endpoints are public and rate limited.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_enrollment_service
from src.api.errors import enrollment_error_response
from src.api.middleware.rate_limit import (
    eligibility_per_ip,
    get_class_code_key,
    limiter,
    submit_per_class,
    submit_per_ip,
)
from src.core.errors import ValidationError
from src.domains.eligibility.service import EligibilityChecker
from src.domains.enrollment.service import EnrollmentFailure, EnrollmentService
from src.models.enrollment import (
    EligibilityResponse,
    EnrollmentRequest,
    EnrollmentResponse,
    ErrorResponse,
)
from src.utils.names import StudentName, compose_student_name

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid submission"},
    403: {"model": ErrorResponse, "description": "Class inactive or expired"},
    404: {"model": ErrorResponse, "description": "Class code not found"},
    409: {"model": ErrorResponse, "description": "Class full or name taken"},
    429: {"model": ErrorResponse, "description": "Too many submissions"},
    503: {"model": ErrorResponse, "description": "Temporarily unavailable, retry later"},
}


def _welcome_message(name: str, archetype: str) -> str:
    return f"Welcome, {name}! You are a {archetype}."


@router.get(
    "/{class_code}/eligibility",
    response_model=EligibilityResponse,
    responses={400: ERROR_RESPONSES[400], 429: ERROR_RESPONSES[429]},
    summary="Check whether a class accepts new students",
)
@limiter.limit(eligibility_per_ip)
async def check_eligibility(
    request: Request,
    class_code: str,
    first_name: str | None = Query(None, max_length=60),
    last_initial: str | None = Query(None, max_length=4),
    db: AsyncSession = Depends(get_db),
) -> EligibilityResponse | JSONResponse:
    """Advisory pre-check shown before the quiz.

    Reports whether the class exists and accepts enrollments, how many
    seats remain, and whether the name is still free. The submission
    decides again; this answer only informs the student.

    Args:
        request: HTTP request (used for rate limiting).
        class_code: Class code as entered.
        first_name: Optional first name to check.
        last_initial: Optional last initial to check.
        db: Database session.

    Returns:
        Eligibility report.
    """
    student_name: StudentName | None = None
    if first_name is not None or last_initial is not None:
        try:
            student_name = compose_student_name(first_name or "", last_initial or "")
        except ValidationError as e:
            return enrollment_error_response(e)

    report = await EligibilityChecker(db).precheck(class_code, student_name)

    return EligibilityResponse(
        class_code=report.class_code,
        eligible=report.eligible,
        reason=report.reason.value if report.reason else None,
        message=report.message,
        class_name=report.class_name,
        enrolled_count=report.enrolled_count,
        seat_limit=report.seat_limit,
        seats_remaining=report.seats_remaining,
        name_available=report.name_available,
    )


@router.post(
    "/{class_code}/enrollments",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Submit the quiz and join the class",
)
@limiter.limit(submit_per_ip)
@limiter.limit(submit_per_class, key_func=get_class_code_key)
async def submit_enrollment(
    request: Request,
    class_code: str,
    data: EnrollmentRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse | JSONResponse:
    """Enroll a student from a quiz submission.

    Args:
        request: HTTP request (used for rate limiting).
        class_code: Class code as entered.
        data: Name, optional grade and quiz answers.
        service: Enrollment service.

    Returns:
        The new student's identity code, archetype and starting balance.
    """
    if data.uses_name_parts:
        try:
            student_name: StudentName | str = compose_student_name(
                data.first_name or "", data.last_initial or ""
            )
        except ValidationError as e:
            return enrollment_error_response(e)
    else:
        student_name = data.student_name or ""

    outcome = await service.enroll(class_code, student_name, data.grade, data.answers)

    if isinstance(outcome, EnrollmentFailure):
        logger.info(
            "Enrollment rejected: class=%s, category=%s, state=%s",
            class_code,
            outcome.category,
            outcome.state.value,
        )
        return enrollment_error_response(outcome.error)

    return EnrollmentResponse(
        student_id=outcome.student_id,
        identity_code=outcome.identity_code,
        student_name=outcome.student_name,
        class_id=outcome.class_id,
        class_code=outcome.class_code,
        archetype=outcome.archetype,
        genius_type=outcome.genius_type,
        personality_type=outcome.personality_type,
        learning_style=outcome.learning_style,
        currency_balance=outcome.currency_balance,
        message=_welcome_message(outcome.student_name, outcome.archetype),
    )

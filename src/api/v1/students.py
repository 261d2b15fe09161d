# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only student ledger endpoints.

- GET /{student_id}/balance - Ledger balance and cached balance
- GET /{student_id}/transactions - Ledger history, newest first
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.errors import error_body
from src.core.config import get_settings
from src.domains.ledger.service import LedgerService, StudentNotFoundError
from src.models.enrollment import ErrorResponse
from src.models.ledger import BalanceResponse, LedgerEntryResponse, LedgerHistoryResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> LedgerService:
    """Get ledger service instance.

    Args:
        db: Database session.

    Returns:
        Configured LedgerService instance.
    """
    return LedgerService(db, max_entry_amount=get_settings().ledger.max_entry_amount)


def _not_found(student_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_body("not_found", f"Student {student_id} not found"),
    )


@router.get(
    "/{student_id}/balance",
    response_model=BalanceResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a student's currency balance",
)
async def get_balance(
    student_id: str,
    db: AsyncSession = Depends(get_db),
) -> BalanceResponse | JSONResponse:
    """Get the balance computed from the ledger.

    Args:
        student_id: Student identifier.
        db: Database session.

    Returns:
        Ledger balance with the cached balance and whether they agree.
    """
    try:
        report = await _get_service(db).reconcile(student_id)
    except StudentNotFoundError:
        return _not_found(student_id)

    return BalanceResponse(
        student_id=student_id,
        balance=report.ledger_balance,
        cached_balance=report.cached_balance,
        in_sync=report.in_sync,
    )


@router.get(
    "/{student_id}/transactions",
    response_model=LedgerHistoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List a student's ledger entries",
)
async def list_transactions(
    student_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> LedgerHistoryResponse | JSONResponse:
    """List ledger entries, newest first.

    Args:
        student_id: Student identifier.
        limit: Maximum entries to return.
        offset: Entries to skip.
        db: Database session.

    Returns:
        Ledger entries and the total entry count.
    """
    service = _get_service(db)
    try:
        entries = await service.history(student_id, limit=limit, offset=offset)
    except StudentNotFoundError:
        return _not_found(student_id)

    return LedgerHistoryResponse(
        student_id=student_id,
        entries=[LedgerEntryResponse.model_validate(entry) for entry in entries],
        total=await service.count_entries(student_id),
    )

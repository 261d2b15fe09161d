# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    enrollment: Class eligibility pre-check and quiz submission.
    students: Read-only student ledger views.
"""

from fastapi import APIRouter

from src.api.v1 import enrollment, students

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(enrollment.router, prefix="/classes", tags=["Enrollment"])
router.include_router(students.router, prefix="/students", tags=["Students"])

__all__ = ["router"]

"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ryde.app.api.v1.endpoints import auth, users

router = APIRouter()

# Sign-up, sign-in, tokens, OTP and passwords
router.include_router(auth.router)

# Profiles
router.include_router(users.router)

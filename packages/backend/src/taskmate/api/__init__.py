"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. Health and auth routers are
open (no auth required).
"""

from fastapi import APIRouter, Depends

from taskmate.api.auth import router as auth_router
from taskmate.api.health import router as health_router
from taskmate.api.tasks import router as tasks_router
from taskmate.api.users import router as users_router
from taskmate.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter()

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes: bearer token required
api_router.include_router(tasks_router, prefix="/api", tags=["todos"], dependencies=_auth)
api_router.include_router(users_router, prefix="/api", tags=["users"], dependencies=_auth)

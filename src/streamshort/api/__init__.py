"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers, and a route added to a
protected router later is protected automatically. Health, auth and
the public content catalog are open; the auth router guards its own
logout and me routes.
"""

from fastapi import APIRouter, Depends

from streamshort.api.auth import router as auth_router
from streamshort.api.content import catalog_router
from streamshort.api.content import router as content_router
from streamshort.api.creators import router as creators_router
from streamshort.api.health import router as health_router
from streamshort.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes: no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(catalog_router, tags=["catalog"])

# Protected routes: require a valid access token
api_router.include_router(creators_router, tags=["creators"], dependencies=_auth)
api_router.include_router(content_router, tags=["content"], dependencies=_auth)

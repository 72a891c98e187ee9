"""API Routes."""

from fastapi import APIRouter

from .admin_users import router as admin_users_router
from .ads import router as ads_router
from .ai import router as ai_router
from .analytics import router as analytics_router
from .articles import router as articles_router
from .auth import router as auth_router
from .billing import router as billing_router
from .bookmarks import router as bookmarks_router
from .comments import router as comments_router
from .dashboard import router as dashboard_router
from .external import router as external_router
from .health import router as health_router
from .public_api import router as public_api_router
from .recommendations import router as recommendations_router
from .search import router as search_router
from .site import router as site_router
from .users import router as users_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(articles_router)
api_router.include_router(comments_router)
api_router.include_router(search_router)
api_router.include_router(bookmarks_router)
api_router.include_router(ads_router)
api_router.include_router(analytics_router)
api_router.include_router(recommendations_router)
api_router.include_router(ai_router)
api_router.include_router(billing_router)
api_router.include_router(site_router)
api_router.include_router(dashboard_router)
api_router.include_router(admin_users_router)
api_router.include_router(external_router)
api_router.include_router(public_api_router)

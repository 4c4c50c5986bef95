"""
API Routes Package

- health: liveness and readiness
- providers: provider listing and selection, stats, circuit state
- chat: chat requests through the router
"""

from vibe_router.api.routes.chat import router as chat_router
from vibe_router.api.routes.health import router as health_router
from vibe_router.api.routes.providers import router as providers_router

__all__ = ["chat_router", "health_router", "providers_router"]

from __future__ import annotations

from app.api.routes.admin import router as admin_router
from app.api.routes.annotations import router as annotations_router
from app.api.routes.health import router as health_router

__all__ = ["admin_router", "annotations_router", "health_router"]

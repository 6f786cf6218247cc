from .auth import router as auth_router
from .facility import router as facility_router
from .health import router as health_router
from .notifications import router as notifications_router
from .permissions import router as permissions_router
from .publishing import router as publishing_router
from .tasks import router as tasks_router

__all__ = [
    "auth_router",
    "facility_router",
    "health_router",
    "notifications_router",
    "permissions_router",
    "publishing_router",
    "tasks_router",
]

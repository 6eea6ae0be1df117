"""API routers."""
from .users import router as users_router
from .tokens import router as tokens_router
from .checks import router as checks_router
from .status import router as status_router

__all__ = ["users_router", "tokens_router", "checks_router", "status_router"]

from .counter import router as counter_router
from .health import router as health_router

__all__ = ["counter_router", "health_router"]

from gateway.src.routes.health import router as health_router
from gateway.src.routes.runs import router as runs_router

__all__ = ["health_router", "runs_router"]

from .route_router import router as route_router

__all__ = ["route_router"]

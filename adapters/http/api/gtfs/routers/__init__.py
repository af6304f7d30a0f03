from .feed_router import router as feed_router

__all__ = ["feed_router"]

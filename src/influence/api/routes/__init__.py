"""HTTP routers."""

from .publish import router as publish_router

__all__ = ["publish_router"]

from api_service.routes.queue import queue_router

__all__ = ["queue_router"]

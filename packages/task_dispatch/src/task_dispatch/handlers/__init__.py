"""
Task handlers - one per task kind.
"""

from task_dispatch.handlers.base import HandlerContext, TaskHandler
from task_dispatch.handlers.registry import HandlerRegistry, build_default_registry

__all__ = ["HandlerContext", "TaskHandler", "HandlerRegistry", "build_default_registry"]

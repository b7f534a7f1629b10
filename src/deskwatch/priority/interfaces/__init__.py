"""Priority HTTP routes."""

from deskwatch.priority.interfaces.controllers import router as priority_router

__all__ = ["priority_router"]

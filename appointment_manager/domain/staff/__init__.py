"""Staff directory: staff members, their service types and daily capacity"""

from .router import router

__all__ = ["router"]

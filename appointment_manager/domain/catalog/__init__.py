"""Service catalog: bookable services, their durations and required staff types"""

from .router import router

__all__ = ["router"]

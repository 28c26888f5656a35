from src.auth.context import InternalCallerContext
from src.auth.dependencies import get_internal_caller

__all__ = [
    "InternalCallerContext",
    "get_internal_caller",
]
